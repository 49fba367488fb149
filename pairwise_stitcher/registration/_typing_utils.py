"""Type aliases and utilities for pairwise registration.

This module provides commonly used type aliases for numpy arrays, positions and
extents used throughout the registration package.
"""
from typing import Any, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt

# Array type aliases
NumArray = npt.NDArray[Any]
FloatArray = npt.NDArray[np.float64]
ComplexArray = npt.NDArray[np.complexfloating]
IntArray = npt.NDArray[np.int_]

# Numeric type aliases
Int = Union[int, np.integer]
Float = Union[float, np.floating]

# Positions and extents
Position = Tuple[int, ...]
RealPosition = Tuple[float, ...]
Dims = Sequence[Int]


def as_dims(dims: Union[Dims, NumArray]) -> Tuple[int, ...]:
    """Return the extent of an array (or an explicit extent) as a tuple of ints."""
    if hasattr(dims, "shape"):
        return tuple(int(d) for d in dims.shape)
    return tuple(int(d) for d in dims)
