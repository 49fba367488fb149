"""Tests for real-space scoring of shift hypotheses."""
import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from .._cross_correlation import (
    calculate_cross_corr,
    calculate_cross_corr_parallel,
    get_correlation,
    get_overlap_intervals,
)
from .._peak import PhaseCorrelationPeak
from .._portions import Region
from ..peak_filter import ShiftBoundsFilter


@pytest.fixture
def noise():
    return np.random.default_rng(7).random((40, 50))


def peak_with_shift(shift, subpixel_shift=None):
    return PhaseCorrelationPeak((0, 0), 1.0, shift=shift, subpixel_shift=subpixel_shift)


def test_overlap_intervals():
    region1, region2 = get_overlap_intervals((40, 50), (30, 60), (5, -10))
    assert region1 == Region((5, 0), (34, 49))
    assert region2 == Region((0, 10), (29, 59))


def test_overlap_intervals_without_overlap():
    assert get_overlap_intervals((10, 10), (10, 10), (10, 0)) is None
    assert get_overlap_intervals((10, 10), (10, 10), (0, -10)) is None


def test_identical_images_correlate_perfectly(noise):
    peak = peak_with_shift((0, 0))
    calculate_cross_corr(peak, noise, noise)
    assert peak.cross_corr == pytest.approx(1.0)
    assert peak.n_pixel == noise.size


def test_shifted_crop(noise):
    img2 = noise[8:, 11:]
    peak = peak_with_shift((8, 11))
    calculate_cross_corr(peak, noise, img2)
    assert peak.cross_corr == pytest.approx(1.0)
    assert peak.n_pixel == img2.size


def test_no_overlap_is_rejected(noise):
    peak = peak_with_shift((40, 0))
    calculate_cross_corr(peak, noise, noise)
    assert peak.cross_corr == -math.inf
    assert peak.n_pixel == 0
    assert peak.is_rejected


def test_zero_variance_overlap():
    flat = np.full((10, 10), 3.0)
    peak = peak_with_shift((2, 2))
    calculate_cross_corr(peak, flat, np.random.default_rng(1).random((10, 10)))
    assert peak.cross_corr == 0.0
    assert peak.n_pixel == 64


def test_min_overlap_as_pixel_count(noise):
    peak = peak_with_shift((30, 40))
    calculate_cross_corr(peak, noise, noise, min_overlap=101)
    assert peak.is_rejected

    peak = peak_with_shift((30, 40))
    calculate_cross_corr(peak, noise, noise, min_overlap=100)
    assert peak.n_pixel == 100


def test_min_overlap_per_axis(noise):
    peak = peak_with_shift((30, 0))
    calculate_cross_corr(peak, noise, noise, min_overlap=[11, 1])
    assert peak.is_rejected

    peak = peak_with_shift((30, 0))
    calculate_cross_corr(peak, noise, noise, min_overlap=[10, 50])
    assert peak.n_pixel == 10 * 50


def test_requires_shift(noise):
    with pytest.raises(ValueError):
        calculate_cross_corr(PhaseCorrelationPeak((0, 0), 1.0), noise, noise)


def test_interpolated_subpixel_shift():
    # a resampled ramp only deviates from a ramp at the clamped border
    y, x = np.mgrid[0:30, 0:30]
    img1 = (y + 2 * x).astype(float)
    img2 = img1[3:, 4:].copy()
    peak = peak_with_shift((3, 4), subpixel_shift=(3.5, 4.0))
    calculate_cross_corr(peak, img1, img2, interpolate_subpixel=True)
    assert peak.cross_corr == pytest.approx(1.0, abs=1e-3)
    assert peak.n_pixel == img2.size


def test_parallel_correlation_matches_serial(noise):
    other = np.random.default_rng(3).random((40, 50))
    serial = get_correlation(noise, other)
    with ThreadPoolExecutor(max_workers=4) as executor:
        parallel = get_correlation(noise, other, executor, num_portions=6)
    assert parallel == pytest.approx(serial)
    assert serial == pytest.approx(np.corrcoef(noise.ravel(), other.ravel())[0, 1])


def test_parallel_scoring(noise):
    img2 = noise[5:, 7:]
    peaks = [peak_with_shift(s) for s in [(5, 7), (0, 0), (45, 0), (-20, 30)]]
    with ThreadPoolExecutor(max_workers=3) as executor:
        outcome = calculate_cross_corr_parallel(peaks, noise, img2, executor)
        # the executor is still usable
        assert executor.submit(lambda: 1).result() == 1

    assert outcome.complete
    assert outcome.value is peaks
    assert peaks[0].cross_corr == pytest.approx(1.0)
    assert peaks[1].cross_corr < 0.5
    assert peaks[2].is_rejected
    assert peaks[3].n_pixel == 15 * 20


def test_parallel_scoring_applies_filter(noise):
    peaks = [peak_with_shift((0, 0)), peak_with_shift((3, 3))]
    bounds = ShiftBoundsFilter.symmetric([2, 2])
    with ThreadPoolExecutor(max_workers=2) as executor:
        calculate_cross_corr_parallel(peaks, noise, noise, executor, peak_filter=bounds)

    assert peaks[0].cross_corr == pytest.approx(1.0)
    assert peaks[1].is_rejected


def test_parallel_scoring_rejects_duplicate_peaks(noise):
    peak = peak_with_shift((0, 0))
    with ThreadPoolExecutor(max_workers=2) as executor:
        with pytest.raises(ValueError):
            calculate_cross_corr_parallel([peak, peak], noise, noise, executor)


def test_failed_scoring_task_is_counted(noise):
    peaks = [peak_with_shift((0, 0)), PhaseCorrelationPeak((0, 0), 1.0)]
    with ThreadPoolExecutor(max_workers=2) as executor:
        outcome = calculate_cross_corr_parallel(peaks, noise, noise, executor)

    assert outcome.failed == 1
    assert not outcome.complete
    assert peaks[0].cross_corr == pytest.approx(1.0)
    assert peaks[1].cross_corr == -1.0
