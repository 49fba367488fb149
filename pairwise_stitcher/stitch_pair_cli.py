import logging
import sys

import tifffile
from pydantic_settings import CliApp

from pairwise_stitcher.parameters import StitchPairCliParameters
from pairwise_stitcher.stitching import stitch_pair


def main(args: list[str]) -> None:
    params = CliApp.run(StitchPairCliParameters, cli_args=args)
    log_level = logging.DEBUG if params.verbose else logging.INFO
    logging.basicConfig(level=log_level)
    # tifffile warnings about unusual metadata are not useful here
    logging.getLogger("tifffile").setLevel(logging.ERROR)

    image1 = tifffile.imread(params.image1)
    image2 = tifffile.imread(params.image2)
    result = stitch_pair(image1, image2, params)
    if result is None:
        print("No shift accepted")
        sys.exit(1)

    shift = ", ".join(f"{s:.3f}" for s in result.shift)
    print(f"shift: ({shift})  r: {result.cross_corr:.4f}  overlap: {result.n_pixel} px")


def run() -> None:
    main(sys.argv[1:])


if __name__ == "__main__":
    run()
