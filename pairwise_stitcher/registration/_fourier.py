"""Phase correlation matrix construction.

Both images are padded to a common extent (their maximum extent, grown by an
optional extension on each side), transformed with `numpy.fft`, combined into
the normalized cross-power spectrum and transformed back. The padding is
placed so that the relative front padding of the two images equals the
offset `extension_offset` assumes when peaks are expanded into shifts.
"""
import logging
from concurrent.futures import Executor
from typing import Optional, Sequence, Tuple

import numpy as np

from ._complex_ops import DEFAULT_NORMALIZATION_THRESHOLD, cross_power_spectrum
from ._parallel import TaskOutcome
from ._shift_expansion import extension_offset, size_difference
from ._typing_utils import Dims, FloatArray, NumArray, as_dims

# Configure logger
logger = logging.getLogger(__name__)


def get_extended_size(dims1: Dims, dims2: Dims, extension: Optional[Sequence[int]] = None) -> Tuple[int, ...]:
    """Extent big enough to hold both images, grown by ``extension`` on each side.

    The extension on each side is capped at the (larger) image size.
    """
    dims1 = as_dims(dims1)
    dims2 = as_dims(dims2)
    if len(dims1) != len(dims2):
        raise ValueError(f"Dimensionality mismatch: {dims1} vs {dims2}")
    if extension is None:
        extension = [0] * len(dims1)

    extended = []
    for d1, d2, ext in zip(dims1, dims2, extension):
        size = max(d1, d2)
        extended.append(size + 2 * min(size, int(ext)))
    return tuple(extended)


def extension_by_factor(dims: Dims, extension_factor: float) -> Tuple[int, ...]:
    """Per-side extension when an image is enlarged by ``extension_factor`` on each side."""
    return tuple(int(d * extension_factor) for d in as_dims(dims))


def _fade(length: int) -> NumArray:
    # weights for padded samples, 1 next to the image falling to 0 at the outer edge
    return 0.5 * (1 + np.cos(np.pi * np.arange(1, length + 1) / (length + 1)))


def extend_image_to_size(
    img: NumArray, extended_dims: Dims, front: Optional[Sequence[int]] = None
) -> FloatArray:
    """Pad ``img`` to ``extended_dims`` by mirroring, blended toward the image mean.

    Args:
        img: Image to pad
        extended_dims: Target extent, at least the image extent in every axis
        front: Padding before the image per axis; defaults to half the size
            difference (the remainder goes after the image)

    Returns:
        Float64 array of extent ``extended_dims`` with ``img`` at offset ``front``
    """
    extended_dims = as_dims(extended_dims)
    difference = size_difference(img.shape, extended_dims)
    if any(d < 0 for d in difference):
        raise ValueError(f"Image of shape {img.shape} does not fit into {extended_dims}")
    if front is None:
        front = [d // 2 for d in difference]
    pad_width = [(int(f), int(d - f)) for f, d in zip(front, difference)]
    if any(after < 0 or before < 0 for before, after in pad_width):
        raise ValueError(f"Front padding {tuple(front)} does not fit into {extended_dims}")

    data = img.astype(np.float64)
    mean = float(data.mean()) if data.size else 0.0
    padded = np.pad(data, pad_width, mode="symmetric")

    weight = np.ones(padded.shape)
    for axis, (before, after) in enumerate(pad_width):
        axis_weight = np.concatenate([_fade(before)[::-1], np.ones(img.shape[axis]), _fade(after)])
        shape = [1] * padded.ndim
        shape[axis] = -1
        weight = weight * axis_weight.reshape(shape)

    return mean + (padded - mean) * weight


def pcm_outcome(
    img1: NumArray,
    img2: NumArray,
    executor: Executor,
    extension: Optional[Sequence[int]] = None,
    normalization_threshold: float = DEFAULT_NORMALIZATION_THRESHOLD,
) -> TaskOutcome[FloatArray]:
    """Phase correlation matrix of two images, with the failure count of its parallel steps."""
    if img1.ndim != img2.ndim:
        raise ValueError(f"Images differ in dimensionality: {img1.ndim} vs {img2.ndim}")

    pcm_dims = get_extended_size(img1.shape, img2.shape, extension)
    offset = extension_offset(pcm_dims, img1.shape, img2.shape)
    front1 = [d // 2 for d in size_difference(img1.shape, pcm_dims)]
    front2 = [f + o for f, o in zip(front1, offset)]
    logger.debug(f"PCM extent {pcm_dims}, front padding {tuple(front1)} and {tuple(front2)}")

    fft1 = np.fft.fftn(extend_image_to_size(img1, pcm_dims, front1))
    fft2 = np.fft.fftn(extend_image_to_size(img2, pcm_dims, front2))
    spectrum = cross_power_spectrum(fft1, fft2, executor, normalization_threshold)

    pcm = np.fft.ifftn(spectrum.value).real
    return TaskOutcome(pcm, spectrum.failed)


def calculate_pcm(
    img1: NumArray,
    img2: NumArray,
    executor: Executor,
    extension: Optional[Sequence[int]] = None,
    normalization_threshold: float = DEFAULT_NORMALIZATION_THRESHOLD,
) -> FloatArray:
    """Phase correlation matrix of two images.

    A maximum at PCM position ``p`` corresponds to image2 being shifted by
    ``p + extension_offset(...)`` (modulo the PCM extent) relative to image1.
    """
    return pcm_outcome(img1, img2, executor, extension, normalization_threshold).value
