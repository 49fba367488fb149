"""Local maxima search in a periodic phase correlation matrix.

The PCM is searched for its ``max_n`` strongest local maxima. A position is a
local maximum unless one of its ``2n`` direct neighbours (one step forward and
backward along every axis, wrapping at the borders) is strictly greater; equal
neighbours never reject a position, so plateaus are kept.

The search region is cut into slabs, every slab is scanned by its own task on
the caller's executor, and the per-task lists are merged into the global top
``max_n``. All orderings use the same strict total order (value descending,
then PCM position ascending), which makes the result independent of how many
tasks or threads took part.
"""
import logging
from concurrent.futures import Executor
from functools import partial
from itertools import chain
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ._parallel import TaskOutcome, executor_or_default, map_then_merge
from ._peak import PhaseCorrelationPeak
from ._portions import Region, default_parallelism, split_along_largest_dimension
from ._shift_expansion import expand_peak_to_possible_shifts
from ._typing_utils import Dims, FloatArray, NumArray, Position
from .peak_filter import PeakFilter, accepts

# Configure logger
logger = logging.getLogger(__name__)

TASKS_PER_THREAD = 4
MAX_SUBPIXEL_OFFSET = 1.0  # Quadratic fits moving further than this are discarded

Maximum = Tuple[Position, float]


def _maximum_sort_key(maximum: Maximum) -> Tuple[float, Position]:
    position, value = maximum
    return (-value, position)


def _periodic_block(pcm: NumArray, region: Region) -> NumArray:
    """Values of ``region`` grown by one sample on each side, wrapping at the borders."""
    block = pcm
    for axis in range(pcm.ndim):
        indices = np.arange(region.min[axis] - 1, region.max[axis] + 2)
        block = np.take(block, indices, axis=axis, mode="wrap")
    return block


def local_maxima_mask(pcm: NumArray, region: Region) -> Tuple[NumArray, NumArray]:
    """Values of ``region`` and a mask that is True where no periodic neighbour is strictly greater."""
    block = _periodic_block(pcm, region)
    inner = tuple(slice(1, -1) for _ in range(pcm.ndim))
    center = block[inner]

    is_max = np.ones(center.shape, dtype=bool)
    for axis in range(pcm.ndim):
        forward = list(inner)
        backward = list(inner)
        forward[axis] = slice(2, None)
        backward[axis] = slice(None, -2)
        is_max &= ~(center < block[tuple(forward)])
        is_max &= ~(center < block[tuple(backward)])
    return center, is_max


def _any_shift_accepted(
    position: Position,
    value: float,
    peak_filter: PeakFilter,
    pcm_dims: Dims,
    img1_dims: Dims,
    img2_dims: Dims,
) -> bool:
    candidate = PhaseCorrelationPeak(position, value)
    possible_shifts = expand_peak_to_possible_shifts(candidate, pcm_dims, img1_dims, img2_dims)
    return any(accepts(peak_filter, p.shift) for p in possible_shifts)


def find_peaks(
    pcm: NumArray,
    region: Region,
    max_n: int,
    peak_filter: Optional[PeakFilter] = None,
    img1_dims: Optional[Dims] = None,
    img2_dims: Optional[Dims] = None,
) -> List[Maximum]:
    """Serially collect the ``max_n`` strongest local maxima inside ``region``.

    Args:
        pcm: Phase correlation matrix, accessed periodically
        region: Part of the PCM to scan
        max_n: Number of maxima to keep
        peak_filter: If given, a maximum is kept only if at least one of its
            real-space shift hypotheses passes the filter
        img1_dims: Extent of the first image (required with a filter)
        img2_dims: Extent of the second image (required with a filter)

    Returns:
        List of (position, value), strongest first, at most ``max_n`` long
    """
    if max_n <= 0 or region.is_empty():
        return []
    if peak_filter is not None and (img1_dims is None or img2_dims is None):
        raise ValueError("Image dimensions are required to filter peaks by their shift")

    center, is_max = local_maxima_mask(pcm, region)
    offsets = np.argwhere(is_max)
    if offsets.size == 0:
        return []

    positions = offsets + np.asarray(region.min, dtype=np.int64)
    values = center[is_max].astype(np.float64, copy=False)

    # lexsort takes its primary key last
    order = np.lexsort(tuple(positions[:, d] for d in reversed(range(pcm.ndim))) + (-values,))

    maxima: List[Maximum] = []
    for index in order:
        position = tuple(int(p) for p in positions[index])
        value = float(values[index])
        if peak_filter is not None and not _any_shift_accepted(
            position, value, peak_filter, pcm.shape, img1_dims, img2_dims
        ):
            continue
        maxima.append((position, value))
        if len(maxima) == max_n:
            break
    return maxima


def merge_maxima(partial_lists: Sequence[List[Maximum]], max_n: int) -> List[Maximum]:
    """Merge per-task lists into the global top ``max_n``."""
    merged = sorted(chain.from_iterable(partial_lists), key=_maximum_sort_key)
    return merged[:max_n]


def find_peaks_mt(
    pcm: NumArray,
    region: Optional[Region],
    max_n: int,
    executor: Executor,
    peak_filter: Optional[PeakFilter] = None,
    img1_dims: Optional[Dims] = None,
    img2_dims: Optional[Dims] = None,
    num_tasks: Optional[int] = None,
) -> TaskOutcome[List[Maximum]]:
    """Parallel version of `find_peaks` running one task per slab of ``region``.

    ``region`` defaults to the whole PCM and ``num_tasks`` to four tasks per
    available CPU. The executor is not shut down.
    """
    if peak_filter is not None and (img1_dims is None or img2_dims is None):
        raise ValueError("Image dimensions are required to filter peaks by their shift")
    if region is None:
        region = Region.from_shape(pcm.shape)
    if max_n <= 0 or region.is_empty():
        return TaskOutcome([])
    if num_tasks is None:
        num_tasks = TASKS_PER_THREAD * default_parallelism()

    slabs = split_along_largest_dimension(region, num_tasks)
    search = partial(
        find_peaks,
        pcm,
        max_n=max_n,
        peak_filter=peak_filter,
        img1_dims=img1_dims,
        img2_dims=img2_dims,
    )
    return map_then_merge(
        executor,
        search,
        slabs,
        partial(merge_maxima, max_n=max_n),
        description="maxima search",
    )


def calculate_subpixel_localization(peak: PhaseCorrelationPeak, pcm: NumArray) -> None:
    """Refine ``peak.subpixel_pcm_location`` with a quadratic fit of its neighbourhood.

    Gradient and Hessian come from central differences around the integer
    location (periodic access). The refined location is the extremum of the
    fitted quadric; if the Hessian is singular or the extremum lies more than
    one sample away, the integer location is kept.
    """
    shape = np.asarray(pcm.shape)
    location = np.asarray(peak.pcm_location, dtype=np.int64)
    n = pcm.ndim

    def value_at(step: NumArray) -> float:
        return float(pcm[tuple((location + step) % shape)])

    unit = np.eye(n, dtype=np.int64)
    center = value_at(np.zeros(n, dtype=np.int64))
    gradient = np.zeros(n)
    hessian = np.zeros((n, n))
    for d in range(n):
        forward = value_at(unit[d])
        backward = value_at(-unit[d])
        gradient[d] = (forward - backward) / 2
        hessian[d, d] = forward - 2 * center + backward
        for e in range(d + 1, n):
            mixed = (
                value_at(unit[d] + unit[e])
                - value_at(unit[d] - unit[e])
                - value_at(-unit[d] + unit[e])
                + value_at(-unit[d] - unit[e])
            ) / 4
            hessian[d, e] = hessian[e, d] = mixed

    refined = location.astype(np.float64)
    try:
        offset = -np.linalg.solve(hessian, gradient)
    except np.linalg.LinAlgError:
        logger.debug(f"Singular Hessian at {peak.pcm_location}, keeping integer location")
    else:
        if np.all(np.isfinite(offset)) and np.all(np.abs(offset) <= MAX_SUBPIXEL_OFFSET):
            refined = refined + offset
        else:
            logger.debug(f"Quadratic fit at {peak.pcm_location} diverged ({offset}), keeping integer location")

    peak.subpixel_pcm_location = tuple(float(r) for r in refined)


def find_pcm_maxima(
    pcm: FloatArray,
    executor: Executor,
    max_n: int,
    subpixel_accuracy: bool = False,
    peak_filter: Optional[PeakFilter] = None,
    img1_dims: Optional[Dims] = None,
    img2_dims: Optional[Dims] = None,
) -> TaskOutcome[List[PhaseCorrelationPeak]]:
    """Find the ``max_n`` strongest PCM maxima as peak candidates, keeping failure counts."""
    search = find_peaks_mt(
        pcm, None, max_n, executor,
        peak_filter=peak_filter, img1_dims=img1_dims, img2_dims=img2_dims,
    )

    peaks = []
    for position, value in search.value:
        peak = PhaseCorrelationPeak(position, value)
        if subpixel_accuracy:
            calculate_subpixel_localization(peak, pcm)
        peaks.append(peak)
    return TaskOutcome(peaks, search.failed)


def get_pcm_maxima(
    pcm: FloatArray,
    executor: Optional[Executor] = None,
    max_n: int = 5,
    subpixel_accuracy: bool = False,
    peak_filter: Optional[PeakFilter] = None,
    img1_dims: Optional[Dims] = None,
    img2_dims: Optional[Dims] = None,
) -> List[PhaseCorrelationPeak]:
    """Find local maxima in the PCM.

    Args:
        pcm: Phase correlation matrix
        executor: Executor to run the search on. If None, a temporary thread
            pool sized to the hardware is created and shut down afterwards.
        max_n: Number of maxima to return
        subpixel_accuracy: Refine every maximum with a quadratic fit
        peak_filter: Optional filter tested against real-space shifts
        img1_dims: Extent of the first image (required with a filter)
        img2_dims: Extent of the second image (required with a filter)

    Returns:
        Peak candidates, strongest first
    """
    with executor_or_default(executor) as pool:
        return find_pcm_maxima(
            pcm, pool, max_n, subpixel_accuracy, peak_filter, img1_dims, img2_dims
        ).value
