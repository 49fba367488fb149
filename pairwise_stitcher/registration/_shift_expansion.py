"""Expansion of PCM maxima into real-space shift hypotheses.

The PCM is the circular correlation of two images that were padded to a common
extent. A maximum at PCM position ``p`` therefore cannot tell a small positive
displacement from its wrapped negative counterpart: per axis the shift is
either ``p`` or ``p - extent`` (after correcting for the unequal padding of the
two images), which gives ``2**n`` hypotheses for an n-dimensional PCM.
"""
from typing import List, Sequence, Tuple

from ._peak import PhaseCorrelationPeak
from ._typing_utils import Dims, Position, as_dims


def size_difference(dims1: Dims, dims2: Dims) -> Tuple[int, ...]:
    """Per-axis size difference ``dims2 - dims1``."""
    dims1 = as_dims(dims1)
    dims2 = as_dims(dims2)
    if len(dims1) != len(dims2):
        raise ValueError(f"Dimensionality mismatch: {dims1} vs {dims2}")
    return tuple(d2 - d1 for d1, d2 in zip(dims1, dims2))


def _half_toward_zero(value: int) -> int:
    half = abs(value) // 2
    return half if value >= 0 else -half


def extension_offset(pcm_dims: Dims, img1_dims: Dims, img2_dims: Dims) -> Tuple[int, ...]:
    """Offset between the aliasing branches of the PCM and real space.

    Per axis ``(extension2 - extension1) / 2`` where ``extensionX`` is how much
    image X was padded to reach the PCM extent; the division truncates toward
    zero.
    """
    extension1 = size_difference(img1_dims, pcm_dims)
    extension2 = size_difference(img2_dims, pcm_dims)
    return tuple(_half_toward_zero(e2 - e1) for e1, e2 in zip(extension1, extension2))


def pcm_location_from_shift(
    shift: Sequence[int], pcm_dims: Dims, img1_dims: Dims, img2_dims: Dims
) -> Position:
    """Canonical PCM position that a real-space shift aliases to."""
    pcm_dims = as_dims(pcm_dims)
    offset = extension_offset(pcm_dims, img1_dims, img2_dims)
    return tuple((int(s) - o) % d for s, o, d in zip(shift, offset, pcm_dims))


def expand_peak_to_possible_shifts(
    peak: PhaseCorrelationPeak, pcm_dims: Dims, img1_dims: Dims, img2_dims: Dims
) -> List[PhaseCorrelationPeak]:
    """Expand a single PCM maximum into every shift it could represent.

    Args:
        peak: Maximum found in the PCM (``pcm_location`` and ``phase_corr`` set)
        pcm_dims: Extent of the PCM
        img1_dims: Extent of the first image
        img2_dims: Extent of the second image

    Returns:
        ``2**n`` copies of ``peak`` that differ only in ``shift`` and
        ``subpixel_shift``. Copy ``i`` is mirrored around zero in every axis
        ``d`` whose bit ``d`` of ``i`` is 0; the last copy is the unmirrored one.
    """
    pcm_dims = as_dims(pcm_dims)
    n = len(pcm_dims)
    if len(peak.pcm_location) != n:
        raise ValueError(
            f"Peak location {peak.pcm_location} does not match PCM dimensions {pcm_dims}"
        )

    subpixel_diff = [0.0] * n
    if peak.subpixel_pcm_location is not None:
        subpixel_diff = [
            float(sub) - loc for sub, loc in zip(peak.subpixel_pcm_location, peak.pcm_location)
        ]

    offset = extension_offset(pcm_dims, img1_dims, img2_dims)
    location_with_offset = [
        (int(loc) + o) % extent for loc, o, extent in zip(peak.pcm_location, offset, pcm_dims)
    ]

    shifted_peaks = []
    for i in range(2 ** n):
        possible_shift = list(location_with_offset)
        for d in range(n):
            if (i >> d) & 1 == 0:
                if possible_shift[d] < 0:
                    possible_shift[d] += pcm_dims[d]
                else:
                    possible_shift[d] -= pcm_dims[d]

        peak_with_shift = peak.copy()
        peak_with_shift.shift = tuple(possible_shift)
        if peak.subpixel_pcm_location is not None:
            peak_with_shift.subpixel_shift = tuple(
                s + diff for s, diff in zip(possible_shift, subpixel_diff)
            )
        shifted_peaks.append(peak_with_shift)

    return shifted_peaks


def expand_peak_list_to_possible_shifts(
    peaks: List[PhaseCorrelationPeak], pcm_dims: Dims, img1_dims: Dims, img2_dims: Dims
) -> None:
    """Replace the content of ``peaks`` with all expansions of every peak, in order."""
    expanded = []
    for peak in peaks:
        expanded.extend(expand_peak_to_possible_shifts(peak, pcm_dims, img1_dims, img2_dims))
    peaks[:] = expanded
