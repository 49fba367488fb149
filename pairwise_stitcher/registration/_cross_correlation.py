"""Real-space scoring of shift hypotheses.

Every candidate shift is scored by the zero-mean (Pearson) cross-correlation
of the two images over the region where they overlap when image2 is placed at
that shift. Candidates without overlap, or with less overlap than required,
are rejected with a score of ``-inf`` and a sample count of 0.
"""
import logging
from concurrent.futures import Executor
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import ndimage

from ._parallel import TaskOutcome, map_then_merge
from ._peak import PhaseCorrelationPeak
from ._portions import Region, default_parallelism, split_along_largest_dimension
from ._typing_utils import Dims, NumArray, as_dims
from .peak_filter import PeakFilter, accepts

# Configure logger
logger = logging.getLogger(__name__)

MinOverlap = Union[int, Sequence[int]]


def get_overlap_intervals(
    dims1: Dims, dims2: Dims, shift: Sequence[int]
) -> Optional[Tuple[Region, Region]]:
    """Overlapping regions of two images (relative to their origins) for a shift.

    Image2 is placed at ``shift`` in the frame of image1, so sample ``p`` of
    image2 lies on sample ``p + shift`` of image1.

    Returns:
        (region in image1, region in image2), both of the same shape, or None if
        the images do not overlap (this happens for hypotheses created by the
        periodic wrap-around of the PCM)
    """
    dims1 = as_dims(dims1)
    dims2 = as_dims(dims2)
    if not (len(dims1) == len(dims2) == len(shift)):
        raise ValueError(f"Dimensionality mismatch: {dims1}, {dims2}, shift {tuple(shift)}")

    min1, max1, min2, max2 = [], [], [], []
    for size1, size2, s in zip(dims1, dims2, shift):
        s = int(s)
        if s >= 0:
            if s >= size1:
                return None
            start1, start2 = s, 0
            overlap = min(size1 - s, size2)
        else:
            if s <= -size2:
                return None
            start1, start2 = 0, -s
            overlap = min(size2 + s, size1)
        min1.append(start1)
        max1.append(start1 + overlap - 1)
        min2.append(start2)
        max2.append(start2 + overlap - 1)

    return Region(tuple(min1), tuple(max1)), Region(tuple(min2), tuple(max2))


def _portion_sums(view1: NumArray, view2: NumArray, slab: Region) -> Tuple[float, float, int]:
    part1 = view1[slab.slices()]
    part2 = view2[slab.slices()]
    return float(np.sum(part1, dtype=np.float64)), float(np.sum(part2, dtype=np.float64)), part1.size


def _portion_centered_sums(
    view1: NumArray, view2: NumArray, mean1: float, mean2: float, slab: Region
) -> Tuple[float, float, float]:
    centered1 = view1[slab.slices()].astype(np.float64) - mean1
    centered2 = view2[slab.slices()].astype(np.float64) - mean2
    return (
        float(np.sum(centered1 * centered1)),
        float(np.sum(centered2 * centered2)),
        float(np.sum(centered1 * centered2)),
    )


def _sum_columns(results: List[Tuple]) -> Tuple:
    if not results:
        return ()
    return tuple(sum(column) for column in zip(*results))


def _run_portions(task, slabs: List[Region], executor: Optional[Executor]) -> TaskOutcome[Tuple]:
    if executor is None:
        return TaskOutcome(_sum_columns([task(slab) for slab in slabs]))
    return map_then_merge(executor, task, slabs, _sum_columns, description="correlation portion")


def correlation_outcome(
    view1: NumArray,
    view2: NumArray,
    executor: Optional[Executor] = None,
    num_portions: Optional[int] = None,
) -> TaskOutcome[float]:
    """Pearson correlation of two equally shaped arrays, with the failure count.

    With an executor the arrays are cut into slabs and partial sums are
    accumulated per slab in parallel (means first, then centered sums).
    Without one, the same sums are computed on the calling thread.
    """
    if view1.shape != view2.shape:
        raise ValueError(f"Cannot correlate arrays of shape {view1.shape} and {view2.shape}")
    if view1.size == 0:
        return TaskOutcome(0.0)

    if executor is None:
        slabs = [Region.from_shape(view1.shape)]
    else:
        slabs = split_along_largest_dimension(
            Region.from_shape(view1.shape), num_portions or default_parallelism()
        )

    sums = _run_portions(lambda slab: _portion_sums(view1, view2, slab), slabs, executor)
    if not sums.value or sums.value[2] == 0:
        return TaskOutcome(0.0, sums.failed)
    sum1, sum2, count = sums.value
    mean1 = sum1 / count
    mean2 = sum2 / count

    centered = _run_portions(
        lambda slab: _portion_centered_sums(view1, view2, mean1, mean2, slab), slabs, executor
    )
    failed = sums.failed + centered.failed
    if not centered.value:
        return TaskOutcome(0.0, failed)
    sum11, sum22, sum12 = centered.value

    # a uniform overlap is most likely an artifact (e.g. padding), never a perfect match
    if sum11 == 0 or sum22 == 0:
        return TaskOutcome(0.0, failed)

    return TaskOutcome(sum12 / np.sqrt(sum11 * sum22), failed)


def get_correlation(
    view1: NumArray,
    view2: NumArray,
    executor: Optional[Executor] = None,
    num_portions: Optional[int] = None,
) -> float:
    """Pearson correlation coefficient of two equally shaped arrays.

    Returns 0.0 if either array has zero variance.
    """
    return correlation_outcome(view1, view2, executor, num_portions).value


def _overlap_sufficient(overlap_shape: Tuple[int, ...], min_overlap: MinOverlap) -> bool:
    if isinstance(min_overlap, (int, np.integer)):
        n_pixel = int(np.prod(overlap_shape))
        return n_pixel >= min_overlap
    if len(min_overlap) != len(overlap_shape):
        raise ValueError(
            f"min_overlap has {len(min_overlap)} entries for {len(overlap_shape)} dimensions"
        )
    return all(extent >= m for extent, m in zip(overlap_shape, min_overlap))


def calculate_cross_corr(
    peak: PhaseCorrelationPeak,
    img1: NumArray,
    img2: NumArray,
    min_overlap: MinOverlap = 0,
    interpolate_subpixel: bool = False,
    executor: Optional[Executor] = None,
) -> None:
    """Score ``peak.shift`` by the correlation of the overlapping image regions.

    Sets ``peak.cross_corr`` and ``peak.n_pixel`` in place.

    Args:
        peak: Candidate with ``shift`` set
        img1: First image
        img2: Second image
        min_overlap: Minimum number of overlapping samples (int) or minimum
            overlap extent per axis (sequence); smaller overlaps are rejected
        interpolate_subpixel: Resample image2 by the fractional part of
            ``peak.subpixel_shift`` (linear interpolation) before scoring
        executor: If given, the correlation itself is computed in parallel.
            Must not be the executor this call is running on.

    Raises:
        ValueError: If the peak has no shift or the images differ in dimensionality
        RuntimeError: If part of the parallel correlation failed
    """
    if peak.shift is None:
        raise ValueError("Peak must be expanded to a shift before it can be scored")
    if img1.ndim != img2.ndim:
        raise ValueError(f"Images differ in dimensionality: {img1.ndim} vs {img2.ndim}")

    intervals = get_overlap_intervals(img1.shape, img2.shape, peak.shift)
    if intervals is None:
        peak.reject()
        return

    region1, region2 = intervals
    if not _overlap_sufficient(region1.shape, min_overlap):
        peak.reject()
        return

    source2 = img2
    if interpolate_subpixel and peak.subpixel_shift is not None:
        fraction = [sub - s for sub, s in zip(peak.subpixel_shift, peak.shift)]
        if any(f != 0 for f in fraction):
            source2 = ndimage.shift(img2.astype(np.float64), fraction, order=1, mode="nearest")

    outcome = correlation_outcome(img1[region1.slices()], source2[region2.slices()], executor)
    if not outcome.complete:
        raise RuntimeError(f"Correlation for shift {peak.shift} is missing {outcome.failed} portions")

    peak.cross_corr = float(outcome.value)
    peak.n_pixel = region1.size


def calculate_cross_corr_parallel(
    peaks: List[PhaseCorrelationPeak],
    img1: NumArray,
    img2: NumArray,
    executor: Executor,
    min_overlap: MinOverlap = 0,
    interpolate_subpixel: bool = False,
    peak_filter: Optional[PeakFilter] = None,
) -> TaskOutcome[List[PhaseCorrelationPeak]]:
    """Score every peak in its own task on ``executor``.

    Each task owns exactly one peak and mutates nothing else, so the peaks in
    the list must be distinct objects. Peaks whose shift is refused by
    ``peak_filter`` are rejected without scoring. A peak whose task fails keeps
    its unset score (-1, no samples) and is counted in ``failed``. The executor
    remains usable after the call.
    """
    if len({id(p) for p in peaks}) != len(peaks):
        raise ValueError("The same peak object appears more than once")

    def score(peak: PhaseCorrelationPeak) -> PhaseCorrelationPeak:
        if accepts(peak_filter, peak.shift):
            calculate_cross_corr(peak, img1, img2, min_overlap, interpolate_subpixel)
        else:
            peak.reject()
        return peak

    return map_then_merge(
        executor, score, peaks, lambda _: peaks, description="cross-correlation"
    )
