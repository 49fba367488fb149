import contextlib
import pathlib
import tempfile
from typing import Generator, Optional

import numpy as np
import skimage
import tifffile

PARAMETERS_FIXTURE_FILE = (
    pathlib.Path(__file__).parent.parent
    / "test_fixtures"
    / "parameters_test"
    / "parameters.json"
)


def overlapping_tiles(
    shift: tuple[int, int],
    tile_shape: tuple[int, int] = (96, 112),
    tile2_shape: Optional[tuple[int, int]] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Cut two overlapping tiles out of the skimage camera image.

    Tile 2 starts ``shift`` pixels after tile 1, so sample ``p`` of tile 2 is
    sample ``p + shift`` of tile 1. Both shift components must be non-negative.
    """
    if tile2_shape is None:
        tile2_shape = tile_shape
    scene = skimage.data.camera()
    origin = (150, 150)
    tile1 = scene[
        origin[0]:origin[0] + tile_shape[0],
        origin[1]:origin[1] + tile_shape[1],
    ]
    start = (origin[0] + shift[0], origin[1] + shift[1])
    tile2 = scene[
        start[0]:start[0] + tile2_shape[0],
        start[1]:start[1] + tile2_shape[1],
    ]
    return tile1.copy(), tile2.copy()


@contextlib.contextmanager
def temporary_tiff_pair(
    tile1: np.ndarray, tile2: np.ndarray
) -> Generator[tuple[pathlib.Path, pathlib.Path], None, None]:
    """Write two tiles as TIFF files into a temporary directory."""
    with tempfile.TemporaryDirectory() as d:
        path1 = pathlib.Path(d) / "tile_1.tiff"
        path2 = pathlib.Path(d) / "tile_2.tiff"
        tifffile.imwrite(path1, tile1)
        tifffile.imwrite(path2, tile2)
        yield path1, path2
