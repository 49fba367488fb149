"""Parallel elementwise operations on complex-valued arrays.

These build the normalized cross-power spectrum that the inverse FFT turns
into a phase correlation matrix. Each operation cuts the result array into
flat portions and processes every portion in its own task.

When all arrays involved share the same shape and are C-contiguous, a portion
is a plain slice of the flattened arrays. Otherwise the flat indices of the
result are converted to coordinates and the sources are read at those
coordinates, so sources only need to cover the result's extent.
"""
from concurrent.futures import Executor
from typing import Callable, Optional, Sequence

import numpy as np

from ._parallel import TaskOutcome, map_then_merge
from ._portions import ImagePortion, divide_into_portions
from ._typing_utils import ComplexArray, NumArray


DEFAULT_NORMALIZATION_THRESHOLD = 1e-5


def multiply_complex(c1: NumArray, c2: NumArray) -> NumArray:
    """Complex product ``c1 * c2``."""
    return c1 * c2


def complex_conj(c: NumArray) -> NumArray:
    """Complex conjugate of ``c``."""
    return np.conjugate(c)


def normalize(c: NumArray, normalization_threshold: float = DEFAULT_NORMALIZATION_THRESHOLD) -> NumArray:
    """Scale ``c`` to length 1 where its power ``|c|`` exceeds the threshold, 0 elsewhere."""
    c = np.asarray(c)
    power = np.abs(c)
    keep = power > normalization_threshold
    result = np.zeros(c.shape, dtype=np.result_type(c.dtype, np.complex64))
    np.divide(c, power, out=result, where=keep)
    return result


def same_iteration_order(*arrays: NumArray) -> bool:
    """True if all arrays can be co-iterated as flat, contiguous buffers."""
    first = arrays[0]
    return all(a.shape == first.shape and a.flags.c_contiguous for a in arrays)


def _check_covers(res: NumArray, sources: Sequence[NumArray]) -> None:
    for source in sources:
        if source.ndim != res.ndim or any(s < r for s, r in zip(source.shape, res.shape)):
            raise ValueError(
                f"Source of shape {source.shape} does not cover result of shape {res.shape}"
            )


def _elementwise(
    operation: Callable[..., NumArray],
    sources: Sequence[NumArray],
    res: NumArray,
    executor: Executor,
    description: str,
) -> TaskOutcome[NumArray]:
    _check_covers(res, sources)
    fast = same_iteration_order(res, *sources)
    if fast:
        flat_res = res.reshape(-1)
        flat_sources = [s.reshape(-1) for s in sources]

    def run_portion(portion: ImagePortion) -> None:
        if fast:
            window = portion.as_slice()
            flat_res[window] = operation(*(s[window] for s in flat_sources))
        else:
            coords = np.unravel_index(np.arange(portion.start, portion.stop), res.shape)
            res[coords] = operation(*(s[coords] for s in sources))

    return map_then_merge(
        executor,
        run_portion,
        divide_into_portions(res.size),
        lambda _: res,
        description=description,
    )


def multiply_complex_intervals(
    img1: ComplexArray, img2: ComplexArray, res: ComplexArray, executor: Executor
) -> TaskOutcome[ComplexArray]:
    """Elementwise ``res = img1 * img2``; ``res`` may be one of the inputs."""
    return _elementwise(multiply_complex, (img1, img2), res, executor, "complex multiply")


def complex_conj_interval(
    img: ComplexArray, res: ComplexArray, executor: Executor
) -> TaskOutcome[ComplexArray]:
    """Elementwise ``res = conj(img)``; ``res`` may be ``img``."""
    return _elementwise(complex_conj, (img,), res, executor, "complex conjugate")


def normalize_interval(
    img: ComplexArray,
    res: ComplexArray,
    executor: Executor,
    normalization_threshold: float = DEFAULT_NORMALIZATION_THRESHOLD,
) -> TaskOutcome[ComplexArray]:
    """Elementwise normalization of ``img`` into ``res``.

    Values whose power ``|c|`` is at most ``normalization_threshold`` are set
    to 0, which keeps near-empty frequencies from blowing up.
    """
    return _elementwise(
        lambda c: normalize(c, normalization_threshold),
        (img,),
        res,
        executor,
        "complex normalize",
    )


def cross_power_spectrum(
    fft1: ComplexArray,
    fft2: ComplexArray,
    executor: Executor,
    normalization_threshold: Optional[float] = DEFAULT_NORMALIZATION_THRESHOLD,
) -> TaskOutcome[ComplexArray]:
    """Turn ``fft1`` into the normalized cross-power spectrum, in place.

    Both spectra are normalized, ``fft2`` is conjugated and the product is
    written to ``fft1``. ``fft2`` is overwritten as well.
    """
    if normalization_threshold is None:
        normalization_threshold = DEFAULT_NORMALIZATION_THRESHOLD

    failed = 0
    failed += normalize_interval(fft1, fft1, executor, normalization_threshold).failed
    failed += normalize_interval(fft2, fft2, executor, normalization_threshold).failed
    failed += complex_conj_interval(fft2, fft2, executor).failed
    failed += multiply_complex_intervals(fft1, fft2, fft1, executor).failed
    return TaskOutcome(fft1, failed)
