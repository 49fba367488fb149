"""Peak aggregation and shift selection for a pair of images.

Given a phase correlation matrix and the two images it was computed from, the
strongest PCM maxima are expanded into all shift hypotheses, hypotheses the
peak filter refuses are rejected, the rest are scored by real-space
cross-correlation and everything is ranked. The top-ranked candidate is the
registration result.
"""
import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..benchmarking_util import debug_timing
from ._cross_correlation import MinOverlap, calculate_cross_corr_parallel
from ._maxima import find_pcm_maxima
from ._parallel import executor_or_default
from ._peak import PhaseCorrelationPeak
from ._shift_expansion import expand_peak_list_to_possible_shifts
from ._typing_utils import FloatArray, NumArray
from .peak_filter import PeakFilter

# Configure logger
logger = logging.getLogger(__name__)


def cross_corr_sort_key(peak: PhaseCorrelationPeak) -> Tuple:
    """Ranking key, best candidate first.

    Cross-correlation descending, then number of overlapping samples
    descending, then PCM value descending, then shift ascending.
    """
    return (-peak.cross_corr, -peak.n_pixel, -peak.phase_corr, peak.shift or ())


def rank_peaks(peaks: List[PhaseCorrelationPeak]) -> List[PhaseCorrelationPeak]:
    """Candidates sorted best first."""
    return sorted(peaks, key=cross_corr_sort_key)


@dataclass
class ShiftEstimate:
    """Ranked candidates for one image pair.

    Attributes:
        peaks: All scored candidates, best first. Rejected candidates
            (``cross_corr == -inf``) are kept at the end.
        complete: False if some parallel task failed and its data is missing
    """
    peaks: List[PhaseCorrelationPeak] = field(default_factory=list)
    complete: bool = True

    @property
    def best(self) -> Optional[PhaseCorrelationPeak]:
        """Top-ranked candidate, or None if no candidate was scored on a valid overlap."""
        if not self.peaks or self.peaks[0].n_pixel == 0:
            return None
        return self.peaks[0]


def get_shift(
    pcm: FloatArray,
    img1: NumArray,
    img2: NumArray,
    executor: Executor,
    n_highest_peaks: int = 5,
    min_overlap: MinOverlap = 0,
    subpixel_accuracy: bool = True,
    interpolate_subpixel: bool = False,
    peak_filter: Optional[PeakFilter] = None,
) -> ShiftEstimate:
    """Estimate the shift of ``img2`` relative to ``img1`` from their PCM.

    Args:
        pcm: Phase correlation matrix of the (padded) images
        img1: First image
        img2: Second image
        executor: Executor for all parallel steps; it is not shut down
        n_highest_peaks: Number of PCM maxima to examine
        min_overlap: Minimum overlap as a sample count (int) or per-axis extent
        subpixel_accuracy: Refine maxima with a quadratic fit
        interpolate_subpixel: Score candidates at their subpixel shift
        peak_filter: Optional acceptance test for real-space shifts; also
            applied while searching the PCM

    Returns:
        ShiftEstimate with the ranked candidates
    """
    if not (pcm.ndim == img1.ndim == img2.ndim):
        raise ValueError(
            f"PCM and images must have the same dimensionality, got {pcm.ndim}, {img1.ndim}, {img2.ndim}"
        )
    if n_highest_peaks <= 0:
        return ShiftEstimate()

    with debug_timing("PCM maxima search", logger):
        maxima = find_pcm_maxima(
            pcm, executor, n_highest_peaks, subpixel_accuracy,
            peak_filter, img1.shape, img2.shape,
        )
    peaks = maxima.value
    expand_peak_list_to_possible_shifts(peaks, pcm.shape, img1.shape, img2.shape)
    logger.debug(f"{len(maxima.value)} maxima expanded to {len(peaks)} shift hypotheses")

    with debug_timing("cross-correlation of shift hypotheses", logger):
        scored = calculate_cross_corr_parallel(
            peaks, img1, img2, executor, min_overlap, interpolate_subpixel, peak_filter
        )

    estimate = ShiftEstimate(rank_peaks(scored.value), maxima.complete and scored.complete)
    if estimate.best is not None:
        best = estimate.best
        logger.debug(f"Best shift {best.best_shift}: r={best.cross_corr:.4f}, {best.n_pixel} samples")
    else:
        logger.debug("No shift hypothesis with a valid overlap")
    return estimate


def get_shift_with_default_pool(
    pcm: FloatArray,
    img1: NumArray,
    img2: NumArray,
    n_highest_peaks: int = 5,
    min_overlap: MinOverlap = 0,
    subpixel_accuracy: bool = True,
    interpolate_subpixel: bool = False,
) -> ShiftEstimate:
    """`get_shift` without a filter on a temporary thread pool sized to the hardware."""
    with executor_or_default(None) as executor:
        return get_shift(
            pcm, img1, img2, executor,
            n_highest_peaks=n_highest_peaks,
            min_overlap=min_overlap,
            subpixel_accuracy=subpixel_accuracy,
            interpolate_subpixel=interpolate_subpixel,
        )
