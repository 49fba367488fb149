"""Registration module for pairwise image stitching.

This module estimates the translation between two overlapping images from
their phase correlation matrix: maxima search, expansion of every maximum into
its shift hypotheses, real-space scoring and ranking.
"""

from ._complex_ops import (
    complex_conj_interval,
    cross_power_spectrum,
    multiply_complex_intervals,
    normalize_interval,
)
from ._cross_correlation import (
    calculate_cross_corr,
    calculate_cross_corr_parallel,
    get_correlation,
    get_overlap_intervals,
)
from ._fourier import calculate_pcm, extension_by_factor, get_extended_size
from ._fusion import dummy_fuse
from ._maxima import find_peaks, find_peaks_mt, get_pcm_maxima
from ._parallel import TaskOutcome, default_executor, map_then_merge
from ._peak import PhaseCorrelationPeak
from ._portions import ImagePortion, Region, divide_into_portions, split_along_largest_dimension
from ._shift_expansion import (
    expand_peak_list_to_possible_shifts,
    expand_peak_to_possible_shifts,
    pcm_location_from_shift,
)
from .pairwise import ShiftEstimate, get_shift, get_shift_with_default_pool, rank_peaks
from .peak_filter import FunctionPeakFilter, PeakFilter, ShiftBoundsFilter

__all__ = [
    'PhaseCorrelationPeak',
    'PeakFilter',
    'FunctionPeakFilter',
    'ShiftBoundsFilter',
    'ImagePortion',
    'Region',
    'divide_into_portions',
    'split_along_largest_dimension',
    'TaskOutcome',
    'map_then_merge',
    'default_executor',
    'find_peaks',
    'find_peaks_mt',
    'get_pcm_maxima',
    'expand_peak_to_possible_shifts',
    'expand_peak_list_to_possible_shifts',
    'pcm_location_from_shift',
    'get_overlap_intervals',
    'get_correlation',
    'calculate_cross_corr',
    'calculate_cross_corr_parallel',
    'multiply_complex_intervals',
    'complex_conj_interval',
    'normalize_interval',
    'cross_power_spectrum',
    'get_extended_size',
    'extension_by_factor',
    'calculate_pcm',
    'dummy_fuse',
    'ShiftEstimate',
    'get_shift',
    'get_shift_with_default_pool',
    'rank_peaks',
]
