"""Tests for the expansion of PCM maxima into shift hypotheses."""
import itertools

import pytest

from .._peak import PhaseCorrelationPeak
from .._shift_expansion import (
    expand_peak_list_to_possible_shifts,
    expand_peak_to_possible_shifts,
    extension_offset,
    pcm_location_from_shift,
)


def test_expansion_of_differently_sized_images():
    peak = PhaseCorrelationPeak((90, 90), 0.8)
    shifts = expand_peak_to_possible_shifts(peak, (100, 100), (80, 81), (91, 90))

    assert [p.shift for p in shifts] == [(-15, -14), (85, -14), (-15, 86), (85, 86)]
    assert all(p.pcm_location == (90, 90) and p.phase_corr == 0.8 for p in shifts)
    assert all(p.subpixel_shift is None for p in shifts)


def test_offset_truncates_toward_zero():
    # extension difference of -11 and -9 halves to -5 and -4
    assert extension_offset((100, 100), (80, 81), (91, 90)) == (-5, -4)
    assert extension_offset((100,), (91,), (80,)) == (5,)


@pytest.mark.parametrize("ndim", [1, 2, 3])
def test_expansion_count(ndim):
    peak = PhaseCorrelationPeak((3,) * ndim, 1.0)
    shifts = expand_peak_to_possible_shifts(peak, (16,) * ndim, (12,) * ndim, (12,) * ndim)

    assert len(shifts) == 2 ** ndim
    assert len({p.shift for p in shifts}) == 2 ** ndim
    assert shifts[-1].shift == (3,) * ndim
    assert shifts[0].shift == (-13,) * ndim


def test_expansion_copies_do_not_alias_input():
    peak = PhaseCorrelationPeak((2, 5), 1.0)
    shifts = expand_peak_to_possible_shifts(peak, (10, 10), (10, 10), (10, 10))

    shifts[0].cross_corr = 0.5
    assert peak.shift is None
    assert peak.cross_corr == -1.0
    assert shifts[1].cross_corr == -1.0


def test_subpixel_shift_keeps_fraction():
    peak = PhaseCorrelationPeak((2, 5), 1.0, subpixel_pcm_location=(2.25, 4.5))
    shifts = expand_peak_to_possible_shifts(peak, (10, 10), (10, 10), (10, 10))

    for p in shifts:
        assert p.subpixel_shift == pytest.approx((p.shift[0] + 0.25, p.shift[1] - 0.5))


def test_every_shift_maps_back_to_its_pcm_location():
    pcm_dims, img1_dims, img2_dims = (20, 17), (13, 17), (20, 10)
    for location in itertools.product(range(pcm_dims[0]), range(pcm_dims[1])):
        peak = PhaseCorrelationPeak(location, 1.0)
        for expanded in expand_peak_to_possible_shifts(peak, pcm_dims, img1_dims, img2_dims):
            assert pcm_location_from_shift(expanded.shift, pcm_dims, img1_dims, img2_dims) == location


def test_expand_peak_list_in_place():
    peaks = [PhaseCorrelationPeak((1, 1), 1.0), PhaseCorrelationPeak((4, 2), 0.5)]
    original = list(peaks)
    expand_peak_list_to_possible_shifts(peaks, (8, 8), (8, 8), (8, 8))

    assert len(peaks) == 8
    assert [p.phase_corr for p in peaks] == [1.0] * 4 + [0.5] * 4
    assert all(p is not q for p in peaks for q in original)


def test_dimensionality_mismatch():
    peak = PhaseCorrelationPeak((1, 1), 1.0)
    with pytest.raises(ValueError):
        expand_peak_to_possible_shifts(peak, (8, 8, 8), (8, 8, 8), (8, 8, 8))
