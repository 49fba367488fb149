"""Tests for the phase correlation maxima search."""
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from .._maxima import (
    calculate_subpixel_localization,
    find_peaks,
    find_peaks_mt,
    get_pcm_maxima,
    local_maxima_mask,
    merge_maxima,
)
from .._peak import PhaseCorrelationPeak
from .._portions import Region
from ..peak_filter import FunctionPeakFilter


def reference_maxima(pcm):
    """Brute-force periodic local maxima, strongest first, ties by position."""
    maxima = []
    for position in np.ndindex(pcm.shape):
        value = pcm[position]
        is_max = True
        for axis in range(pcm.ndim):
            for step in (-1, 1):
                neighbour = list(position)
                neighbour[axis] = (neighbour[axis] + step) % pcm.shape[axis]
                if value < pcm[tuple(neighbour)]:
                    is_max = False
        if is_max:
            maxima.append((tuple(int(p) for p in position), float(value)))
    return sorted(maxima, key=lambda m: (-m[1], m[0]))


@pytest.fixture
def tied_pcm():
    # coarse values create many equal maxima, so ordering ties matter
    rng = np.random.default_rng(42)
    return np.round(rng.random((23, 31)), 1)


def test_single_maximum():
    pcm = np.zeros((8, 9))
    pcm[3, 4] = 1.0
    assert find_peaks(pcm, Region.from_shape(pcm.shape), 1) == [((3, 4), 1.0)]


def test_plateau_is_kept():
    pcm = np.zeros((8, 8))
    pcm[2, 2] = pcm[2, 3] = 1.0
    assert find_peaks(pcm, Region.from_shape(pcm.shape), 2) == [((2, 2), 1.0), ((2, 3), 1.0)]


def test_neighbours_wrap_around():
    pcm = np.zeros((6, 6))
    pcm[0, 0] = 1.0
    pcm[5, 0] = 2.0
    center, is_max = local_maxima_mask(pcm, Region.from_shape(pcm.shape))

    assert center.shape == (6, 6)
    assert not is_max[0, 0]
    assert is_max[5, 0]


def test_matches_brute_force(tied_pcm):
    expected = reference_maxima(tied_pcm)[:12]
    assert find_peaks(tied_pcm, Region.from_shape(tied_pcm.shape), 12) == expected


def test_sub_region_uses_neighbours_outside_region():
    pcm = np.zeros((10, 10))
    pcm[4, 4] = 1.0
    pcm[4, 5] = 2.0
    region = Region((0, 0), (9, 4))
    assert ((4, 4), 1.0) not in find_peaks(pcm, region, 100)


@pytest.mark.parametrize("num_tasks", [1, 2, 5, 23, 64])
def test_result_independent_of_task_count(tied_pcm, num_tasks):
    expected = reference_maxima(tied_pcm)[:9]
    with ThreadPoolExecutor(max_workers=4) as executor:
        outcome = find_peaks_mt(tied_pcm, None, 9, executor, num_tasks=num_tasks)
    assert outcome.complete
    assert outcome.value == expected


def test_result_independent_of_thread_count(tied_pcm):
    results = []
    for workers in (1, 3, 8):
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results.append([(p.pcm_location, p.phase_corr) for p in get_pcm_maxima(tied_pcm, executor, 7)])
    assert results[0] == results[1] == results[2]


def test_merge_maxima_orders_ties_by_position():
    merged = merge_maxima([[((5, 1), 0.5), ((0, 0), 0.2)], [((1, 9), 0.5), ((2, 2), 0.9)]], 3)
    assert merged == [((2, 2), 0.9), ((1, 9), 0.5), ((5, 1), 0.5)]


def test_max_n_zero():
    pcm = np.random.default_rng(0).random((8, 8))
    assert find_peaks(pcm, Region.from_shape(pcm.shape), 0) == []
    assert get_pcm_maxima(pcm, max_n=0) == []


@pytest.mark.parametrize("workers", [1, 6])
def test_filter_rejecting_everything(workers):
    pcm = np.random.default_rng(0).random((8, 8))
    never = FunctionPeakFilter(lambda shift: False)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcome = find_peaks_mt(
            pcm, None, 5, executor, peak_filter=never, img1_dims=(8, 8), img2_dims=(8, 8)
        )
        peaks = get_pcm_maxima(
            pcm, executor, max_n=5, peak_filter=never, img1_dims=(8, 8), img2_dims=(8, 8)
        )
    assert outcome.complete
    assert outcome.value == []
    assert peaks == []


def test_filter_keeps_maxima_with_any_accepted_shift():
    pcm = np.zeros((10, 10))
    pcm[8, 1] = 1.0
    pcm[4, 4] = 0.5
    # (8, 1) aliases to shift (-2, 1), (4, 4) only to shifts of magnitude >= 4
    small = FunctionPeakFilter(lambda shift: all(abs(s) <= 2 for s in shift))
    maxima = find_peaks(pcm, Region.from_shape(pcm.shape), 2, small, (10, 10), (10, 10))
    assert maxima[0] == ((8, 1), 1.0)
    assert ((4, 4), 0.5) not in maxima


def test_filter_requires_image_dims():
    pcm = np.zeros((4, 4))
    with pytest.raises(ValueError):
        find_peaks(pcm, Region.from_shape(pcm.shape), 1, FunctionPeakFilter(lambda s: True))


def test_filter_without_image_dims_raises_before_searching():
    pcm = np.random.default_rng(0).random((8, 8))
    submitted = []

    class RecordingExecutor(ThreadPoolExecutor):
        def submit(self, fn, *args, **kwargs):
            submitted.append(fn)
            return super().submit(fn, *args, **kwargs)

    with RecordingExecutor(max_workers=2) as executor:
        with pytest.raises(ValueError):
            get_pcm_maxima(pcm, executor, max_n=3, peak_filter=FunctionPeakFilter(lambda s: True))
    assert submitted == []


def test_subpixel_quadratic_fit():
    y, x = np.mgrid[0:32, 0:32]
    pcm = -((y - 10.3) ** 2 + (x - 20.6) ** 2)
    peaks = get_pcm_maxima(pcm, max_n=1, subpixel_accuracy=True)

    assert len(peaks) == 1
    assert peaks[0].pcm_location == (10, 21)
    assert peaks[0].subpixel_pcm_location == pytest.approx((10.3, 20.6))


def test_subpixel_fit_falls_back_on_flat_neighbourhood():
    pcm = np.ones((5, 5))
    peak = PhaseCorrelationPeak((2, 2), 1.0)
    calculate_subpixel_localization(peak, pcm)
    assert peak.subpixel_pcm_location == (2.0, 2.0)
