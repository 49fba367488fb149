"""Splitting of index ranges and regions into portions for parallel work.

Every parallel operation of the registration package cuts its input with one
of the two splitters below and submits one task per portion:

- `divide_into_portions` cuts a linear range ``[0, total)`` (flat iteration
  over an array).
- `split_along_largest_dimension` cuts an n-dimensional region along its
  largest axis (regional scans that need neighbourhood access).

Both return contiguous, disjoint portions covering the input exactly once,
with sizes balanced to within one element (or one row).
"""
import os
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence, Tuple

from ._typing_utils import Int


class ImagePortion(NamedTuple):
    """A contiguous run of flat indices."""
    start: int
    loop_size: int

    @property
    def stop(self) -> int:
        return self.start + self.loop_size

    def as_slice(self) -> slice:
        return slice(self.start, self.stop)


@dataclass(frozen=True)
class Region:
    """An n-dimensional box of integer positions with inclusive bounds."""
    min: Tuple[int, ...]
    max: Tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.min) != len(self.max):
            raise ValueError(f"Region bounds differ in dimensionality: {self.min} vs {self.max}")

    @classmethod
    def from_shape(cls, shape: Sequence[Int]) -> "Region":
        """Region covering a whole array of the given shape."""
        return cls(tuple(0 for _ in shape), tuple(int(s) - 1 for s in shape))

    @property
    def ndim(self) -> int:
        return len(self.min)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(max(0, hi - lo + 1) for lo, hi in zip(self.min, self.max))

    @property
    def size(self) -> int:
        size = 1
        for s in self.shape:
            size *= s
        return size

    def is_empty(self) -> bool:
        return self.size == 0

    def slices(self) -> Tuple[slice, ...]:
        """Numpy slices selecting this region from an array whose origin is 0."""
        return tuple(slice(lo, hi + 1) for lo, hi in zip(self.min, self.max))


def default_parallelism() -> int:
    """Number of hardware threads available to this process."""
    return os.cpu_count() or 1


def _balanced_sizes(total: int, parts: int) -> List[int]:
    base, remainder = divmod(total, parts)
    return [base + 1 if i < remainder else base for i in range(parts)]


def divide_into_portions(total: Int, num_portions: Optional[Int] = None) -> List[ImagePortion]:
    """Divide ``total`` flat elements into contiguous portions.

    Args:
        total: Number of elements to cover
        num_portions: Target number of portions, defaults to the number of CPUs.
            Never more portions than elements are returned.

    Returns:
        Ordered list of portions; sizes differ by at most one element.

    Raises:
        ValueError: If total or num_portions is negative
    """
    total = int(total)
    if total < 0:
        raise ValueError(f"Cannot split a negative number of elements: {total}")
    if num_portions is None:
        num_portions = default_parallelism()
    num_portions = int(num_portions)
    if num_portions <= 0:
        raise ValueError(f"num_portions must be positive, got {num_portions}")
    if total == 0:
        return []

    portions = []
    start = 0
    for loop_size in _balanced_sizes(total, min(total, num_portions)):
        portions.append(ImagePortion(start, loop_size))
        start += loop_size
    return portions


def split_along_largest_dimension(region: Region, num_parts: Int) -> List[Region]:
    """Split a region into at most ``num_parts`` slabs along its largest axis.

    Ties between equally large axes go to the first one. Slab thicknesses differ
    by at most one row, and an empty region yields no slabs.
    """
    num_parts = int(num_parts)
    if num_parts <= 0:
        raise ValueError(f"num_parts must be positive, got {num_parts}")
    if region.is_empty():
        return []

    shape = region.shape
    axis = max(range(region.ndim), key=lambda d: (shape[d], -d))

    parts = []
    start = region.min[axis]
    for thickness in _balanced_sizes(shape[axis], min(shape[axis], num_parts)):
        lo = list(region.min)
        hi = list(region.max)
        lo[axis] = start
        hi[axis] = start + thickness - 1
        parts.append(Region(tuple(lo), tuple(hi)))
        start += thickness
    return parts
