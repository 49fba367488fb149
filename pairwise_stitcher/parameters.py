import os
from typing import Annotated, Optional, Union

from pydantic import AfterValidator, BaseModel, Field, field_validator

from .registration._complex_ops import DEFAULT_NORMALIZATION_THRESHOLD


def input_path_exists(path: str) -> str:
    """Pydantic validator to check the path exists."""
    if not os.path.exists(path):
        raise ValueError(f"Input image does not exist: {path}")

    return path


class PairwiseStitchingParameters(
    BaseModel,
    use_attribute_docstrings=True,
):
    """Parameters for registering a pair of overlapping images."""

    peaks_to_check: int = Field(default=5, ge=0)
    """Number of phase correlation maxima to examine.

    Every maximum is expanded into 2^n shift hypotheses (n = number of image
    dimensions), each of which is scored by cross-correlation. 0 disables the
    search and no shift is returned.
    """

    min_overlap: Union[int, list[int]] = 0
    """Minimum overlap of the two images for a shift to be considered.

    A single number is the minimum count of overlapping pixels; a list gives
    the minimum overlap extent per dimension.
    """

    do_subpixel: bool = True
    """Refine phase correlation maxima to subpixel accuracy."""

    interpolate_cross_correlation: bool = False
    """Score subpixel shifts on an interpolated image2 instead of the rounded shift."""

    min_r: float = 0.0
    """Shifts with a lower cross-correlation are refused."""

    max_r: float = 1.0
    """Shifts with a higher cross-correlation are refused."""

    max_shift: Optional[list[float]] = None
    """Largest absolute shift allowed per dimension, in pixels. None allows any shift."""

    extension_factor: float = Field(default=0.1, ge=0.0)
    """Padding added on each side of the images before the FFT, as a fraction of their size."""

    normalization_threshold: float = Field(default=DEFAULT_NORMALIZATION_THRESHOLD, ge=0.0)
    """Spectrum values with a smaller magnitude are zeroed instead of normalized."""

    num_threads: Optional[int] = Field(default=None, ge=1)
    """Worker threads to use; None uses one per CPU."""

    verbose: bool = False
    """Show debug-level logging."""

    @field_validator("min_overlap")
    @classmethod
    def _min_overlap_not_negative(cls, value: Union[int, list[int]]) -> Union[int, list[int]]:
        values = value if isinstance(value, list) else [value]
        if any(v < 0 for v in values):
            raise ValueError(f"min_overlap must not be negative, got {value}")
        return value

    @classmethod
    def from_json_file(cls, json_path: str) -> "PairwiseStitchingParameters":
        """Create parameters from a JSON file.

        Args:
            json_path: Path to JSON file containing parameters

        Returns:
            PairwiseStitchingParameters: New instance with values from JSON
        """
        with open(json_path) as f:
            return cls.model_validate_json(f.read())

    def to_json_file(self, json_path: str) -> None:
        """Save parameters to a JSON file.

        Args:
            json_path: Path where JSON file should be saved
        """
        with open(json_path, "w") as f:
            f.write(self.model_dump_json(indent=2))


class StitchPairCliParameters(PairwiseStitchingParameters):
    """Parameters for registering two image files from the command line."""

    image1: Annotated[str, AfterValidator(input_path_exists)]
    """The reference image (TIFF)."""

    image2: Annotated[str, AfterValidator(input_path_exists)]
    """The image whose shift relative to image1 is estimated (TIFF)."""
