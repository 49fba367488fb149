"""Pluggable acceptance tests for candidate shifts.

A peak filter decides whether a real-space shift of image2 relative to image1
is plausible before the shift is searched further or scored. Filters are
always tested against image-space shifts, never PCM coordinates.

Thread safety is part of the contract: the maxima search and the
cross-correlation scoring call `test_peak` concurrently from many worker
threads without any external synchronisation. Implementations must not mutate
shared state without their own locking.
"""
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence, Tuple, runtime_checkable

from ._typing_utils import Float


@runtime_checkable
class PeakFilter(Protocol):
    """Accepts or rejects a candidate shift; callable concurrently from any thread."""

    def test_peak(self, shift: Sequence[Float]) -> bool:
        ...


def accepts(peak_filter: Optional[PeakFilter], shift: Sequence[Float]) -> bool:
    """Apply ``peak_filter`` to ``shift``; a missing filter accepts everything."""
    return peak_filter is None or bool(peak_filter.test_peak(shift))


@dataclass(frozen=True)
class FunctionPeakFilter:
    """Adapts a plain predicate to the `PeakFilter` protocol.

    The wrapped function carries the same thread-safety obligation.
    """
    predicate: Callable[[Sequence[Float]], bool]

    def test_peak(self, shift: Sequence[Float]) -> bool:
        return bool(self.predicate(shift))


@dataclass(frozen=True)
class ShiftBoundsFilter:
    """Accepts shifts inside inclusive per-axis bounds.

    Instances are immutable, so they can be shared freely between threads.
    """
    min_shift: Tuple[float, ...]
    max_shift: Tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.min_shift) != len(self.max_shift):
            raise ValueError("min_shift and max_shift must have the same length")
        for lo, hi in zip(self.min_shift, self.max_shift):
            if lo > hi:
                raise ValueError(f"Empty shift bounds: [{lo}, {hi}]")

    @classmethod
    def symmetric(cls, max_abs_shift: Sequence[Float]) -> "ShiftBoundsFilter":
        """Bounds ``[-m, m]`` for every axis."""
        return cls(
            tuple(-abs(float(m)) for m in max_abs_shift),
            tuple(abs(float(m)) for m in max_abs_shift),
        )

    def test_peak(self, shift: Sequence[Float]) -> bool:
        if len(shift) != len(self.min_shift):
            raise ValueError(
                f"Shift has {len(shift)} dimensions, filter expects {len(self.min_shift)}"
            )
        return all(lo <= s <= hi for s, lo, hi in zip(shift, self.min_shift, self.max_shift))
