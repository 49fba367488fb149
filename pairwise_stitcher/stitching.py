"""Pairwise stitching: translation of one image relative to another.

Builds the phase correlation matrix of the two images, searches it for the
configured number of maxima, scores every shift hypothesis by cross-correlation
and returns the best shift if its correlation is within the accepted range.
"""
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Optional, Tuple

from .benchmarking_util import debug_timing
from .parameters import PairwiseStitchingParameters
from .registration._fourier import extension_by_factor, pcm_outcome
from .registration._parallel import executor_or_default
from .registration._peak import PhaseCorrelationPeak
from .registration._typing_utils import NumArray
from .registration.pairwise import ShiftEstimate, get_shift
from .registration.peak_filter import ShiftBoundsFilter

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class PairwiseResult:
    """Accepted translation of image2 relative to image1.

    Attributes:
        shift: Translation in pixels (subpixel if refinement was enabled)
        cross_corr: Cross-correlation of the overlapping regions at that shift
        n_pixel: Number of overlapping pixels
        peak: The winning candidate
        complete: False if part of the parallel computation failed
    """
    shift: Tuple[float, ...]
    cross_corr: float
    n_pixel: int
    peak: PhaseCorrelationPeak
    complete: bool = True


def estimate_shift(
    img1: NumArray,
    img2: NumArray,
    params: PairwiseStitchingParameters,
    executor: Executor,
) -> ShiftEstimate:
    """Ranked shift hypotheses for two images under the given parameters."""
    if img1.ndim != img2.ndim:
        raise ValueError(f"Images differ in dimensionality: {img1.ndim} vs {img2.ndim}")

    peak_filter = None
    if params.max_shift is not None:
        if len(params.max_shift) != img1.ndim:
            raise ValueError(
                f"max_shift has {len(params.max_shift)} entries for {img1.ndim}-dimensional images"
            )
        peak_filter = ShiftBoundsFilter.symmetric(params.max_shift)

    extension = extension_by_factor(
        [max(d1, d2) for d1, d2 in zip(img1.shape, img2.shape)], params.extension_factor
    )
    with debug_timing("PCM computation", logger):
        pcm = pcm_outcome(img1, img2, executor, extension, params.normalization_threshold)

    estimate = get_shift(
        pcm.value,
        img1,
        img2,
        executor,
        n_highest_peaks=params.peaks_to_check,
        min_overlap=params.min_overlap,
        subpixel_accuracy=params.do_subpixel,
        interpolate_subpixel=params.interpolate_cross_correlation,
        peak_filter=peak_filter,
    )
    estimate.complete = estimate.complete and pcm.complete
    return estimate


def stitch_pair(
    img1: NumArray,
    img2: NumArray,
    params: Optional[PairwiseStitchingParameters] = None,
    executor: Optional[Executor] = None,
) -> Optional[PairwiseResult]:
    """Estimate the translation of ``img2`` relative to ``img1``.

    Args:
        img1: Reference image
        img2: Moving image, same dimensionality as img1
        params: Stitching parameters, defaults if None
        executor: Executor for the parallel steps. If None a temporary thread
            pool with ``params.num_threads`` workers is used.

    Returns:
        PairwiseResult, or None if no candidate had a valid overlap or the best
        correlation is outside ``[params.min_r, params.max_r]``
    """
    if params is None:
        params = PairwiseStitchingParameters()

    with executor_or_default(executor, params.num_threads) as pool:
        estimate = estimate_shift(img1, img2, params, pool)

    if not estimate.complete:
        logger.warning("Some parallel tasks failed; the shift estimate may be based on partial data")

    best = estimate.best
    if best is None:
        logger.info("No shift with a valid overlap was found")
        return None
    if not (params.min_r <= best.cross_corr <= params.max_r):
        logger.info(
            f"Best shift {best.best_shift} refused: r={best.cross_corr:.4f} "
            f"outside [{params.min_r}, {params.max_r}]"
        )
        return None

    return PairwiseResult(
        shift=best.best_shift,
        cross_corr=best.cross_corr,
        n_pixel=best.n_pixel,
        peak=best,
        complete=estimate.complete,
    )
