"""Pairwise Stitcher Package.

This package estimates the translation between two overlapping microscope
image tiles with phase correlation.

Main functionality:
- Phase correlation matrix construction from two (differently sized) images
- Parallel search for the strongest phase correlation maxima
- Expansion of every maximum into the shifts it can represent
- Real-space cross-correlation scoring and ranking of those shifts
- Pluggable peak filters to restrict the accepted shifts

The package exposes the key registration functions at the top level for convenience.
"""

from .parameters import PairwiseStitchingParameters
from .registration import (
    PeakFilter,
    FunctionPeakFilter,
    PhaseCorrelationPeak,
    ShiftBoundsFilter,
    ShiftEstimate,
    calculate_cross_corr_parallel,
    calculate_pcm,
    expand_peak_to_possible_shifts,
    get_pcm_maxima,
    get_shift,
    get_shift_with_default_pool,
)
from .stitching import PairwiseResult, stitch_pair

__all__ = [
    'PairwiseStitchingParameters',
    'PairwiseResult',
    'stitch_pair',
    'PeakFilter',
    'FunctionPeakFilter',
    'ShiftBoundsFilter',
    'PhaseCorrelationPeak',
    'ShiftEstimate',
    'calculate_pcm',
    'get_pcm_maxima',
    'expand_peak_to_possible_shifts',
    'calculate_cross_corr_parallel',
    'get_shift',
    'get_shift_with_default_pool',
]
