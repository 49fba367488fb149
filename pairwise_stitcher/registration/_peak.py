"""Phase correlation peak candidates."""
import dataclasses
import math
from dataclasses import dataclass
from typing import Optional

from ._typing_utils import Position, RealPosition

UNSET_CROSS_CORR = -1.0
REJECTED_CROSS_CORR = -math.inf


@dataclass
class PhaseCorrelationPeak:
    """A local maximum of the PCM and, once expanded, one shift hypothesis for it.

    Candidates are created by the maxima search (location and value only),
    given a ``shift`` by the ambiguity expansion, and scored in place by the
    cross-correlation evaluator. Each candidate belongs to one registration
    call; a scoring task only ever touches its own candidate.

    Attributes:
        pcm_location: Integer position of the maximum in the PCM
        phase_corr: PCM value at ``pcm_location``
        subpixel_pcm_location: Refined PCM position, if subpixel fitting ran
        shift: Displacement of image2 relative to image1 (set by expansion)
        subpixel_shift: ``shift`` plus the fractional part of the refined position
        cross_corr: Real-space correlation; -1 until scored, -inf when rejected
        n_pixel: Number of overlapping samples used for ``cross_corr``
    """
    pcm_location: Position
    phase_corr: float
    subpixel_pcm_location: Optional[RealPosition] = None
    shift: Optional[Position] = None
    subpixel_shift: Optional[RealPosition] = None
    cross_corr: float = UNSET_CROSS_CORR
    n_pixel: int = 0

    def copy(self) -> "PhaseCorrelationPeak":
        return dataclasses.replace(self)

    def reject(self) -> None:
        """Mark this candidate as invalid (no overlap, too small, or filtered)."""
        self.cross_corr = REJECTED_CROSS_CORR
        self.n_pixel = 0

    @property
    def is_rejected(self) -> bool:
        return self.cross_corr == REJECTED_CROSS_CORR

    @property
    def best_shift(self) -> Optional[RealPosition]:
        """The subpixel shift when available, else the integer shift."""
        if self.subpixel_shift is not None:
            return self.subpixel_shift
        if self.shift is not None:
            return tuple(float(s) for s in self.shift)
        return None
