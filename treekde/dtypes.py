"""Local dtype policy for treekde contracts."""

import jax.numpy as jnp
import numpy as np

# Keep tree/index contracts consistent across treekde artifacts.
INDEX_DTYPE = np.int64
# Kernel sums accumulate many small terms; stay in double precision.
FLOAT_DTYPE = np.float64
LABEL_DTYPE = np.int8


def as_index(x):
    """Convert a scalar/array to treekde index dtype."""
    return np.asarray(x, dtype=INDEX_DTYPE)


def as_float(x):
    """Convert a scalar/array to the host float dtype."""
    return np.asarray(x, dtype=FLOAT_DTYPE)


def as_device_float(x):
    """Convert a scalar/array to a float64 jax array."""
    return jnp.asarray(x, dtype=jnp.float64)


__all__ = [
    "FLOAT_DTYPE",
    "INDEX_DTYPE",
    "LABEL_DTYPE",
    "as_device_float",
    "as_float",
    "as_index",
]
