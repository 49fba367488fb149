"""Test fusion of an image pair at a given shift, for checking a registration by eye."""
from concurrent.futures import Executor
from typing import Optional, Sequence

import numpy as np

from ._complex_ops import same_iteration_order
from ._parallel import TaskOutcome, executor_or_default, map_then_merge
from ._portions import ImagePortion, divide_into_portions
from ._typing_utils import FloatArray, NumArray


def copy_real_image(
    source: NumArray, dest: NumArray, offset: Sequence[int], executor: Executor
) -> TaskOutcome[NumArray]:
    """Copy ``source`` into ``dest`` at ``offset``, converting to the dest type.

    The source must fit into ``dest`` at that offset.
    """
    if any(o < 0 or o + s > d for o, s, d in zip(offset, source.shape, dest.shape)):
        raise ValueError(f"Image of shape {source.shape} at {tuple(offset)} does not fit into {dest.shape}")

    target = dest[tuple(slice(o, o + s) for o, s in zip(offset, source.shape))]
    contiguous = same_iteration_order(source)

    def copy_portion(portion: ImagePortion) -> None:
        coords = np.unravel_index(np.arange(portion.start, portion.stop), source.shape)
        if contiguous:
            target[coords] = source.reshape(-1)[portion.as_slice()]
        else:
            target[coords] = source[coords]

    return map_then_merge(
        executor, copy_portion, divide_into_portions(source.size), lambda _: dest,
        description="image copy",
    )


def dummy_fuse(
    img1: NumArray,
    img2: NumArray,
    shift: Sequence[int],
    executor: Optional[Executor] = None,
) -> FloatArray:
    """Fuse ``img2`` over ``img1`` at an integer shift into a new float32 canvas.

    The canvas spans both images; img1 is copied first and img2 overwrites it
    where they overlap.
    """
    if not (img1.ndim == img2.ndim == len(shift)):
        raise ValueError("Images and shift must have the same dimensionality")

    lower = [min(0, int(s)) for s in shift]
    upper = [max(d1, int(s) + d2) for d1, d2, s in zip(img1.shape, img2.shape, shift)]
    fused = np.zeros([hi - lo for lo, hi in zip(lower, upper)], dtype=np.float32)

    with executor_or_default(executor) as pool:
        copy_real_image(img1, fused, [-lo for lo in lower], pool)
        copy_real_image(img2, fused, [int(s) - lo for s, lo in zip(shift, lower)], pool)
    return fused
