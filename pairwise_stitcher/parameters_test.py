import tempfile
import unittest

import pydantic

from pairwise_stitcher.testutil import PARAMETERS_FIXTURE_FILE

from .parameters import PairwiseStitchingParameters, StitchPairCliParameters


class ParametersTest(unittest.TestCase):
    def test_parsing(self) -> None:
        params = PairwiseStitchingParameters.from_json_file(str(PARAMETERS_FIXTURE_FILE))
        self.assertEqual(params.peaks_to_check, 8)
        self.assertEqual(params.min_overlap, 100)
        self.assertEqual(params.max_shift, [20.0, 30.0])
        self.assertIsNone(params.num_threads)

    def test_roundtrip(self) -> None:
        with tempfile.NamedTemporaryFile("w+", delete=True) as f:
            params = PairwiseStitchingParameters.from_json_file(str(PARAMETERS_FIXTURE_FILE))
            params.to_json_file(f.name)
            f.flush()
            f.seek(0)
            contents = f.read()

        with open(PARAMETERS_FIXTURE_FILE) as f:
            fixture_contents = f.read()

        self.assertEqual(contents, fixture_contents)

    def test_defaults(self) -> None:
        params = PairwiseStitchingParameters()
        self.assertEqual(params.peaks_to_check, 5)
        self.assertEqual(params.min_overlap, 0)
        self.assertTrue(params.do_subpixel)
        self.assertFalse(params.interpolate_cross_correlation)
        self.assertIsNone(params.max_shift)

    def test_per_axis_min_overlap(self) -> None:
        params = PairwiseStitchingParameters(min_overlap=[10, 20])
        self.assertEqual(params.min_overlap, [10, 20])

    def test_negative_min_overlap_rejected(self) -> None:
        with self.assertRaises(pydantic.ValidationError):
            PairwiseStitchingParameters(min_overlap=-1)
        with self.assertRaises(pydantic.ValidationError):
            PairwiseStitchingParameters(min_overlap=[10, -1])

    def test_invalid_counts_rejected(self) -> None:
        with self.assertRaises(pydantic.ValidationError):
            PairwiseStitchingParameters(peaks_to_check=-1)
        with self.assertRaises(pydantic.ValidationError):
            PairwiseStitchingParameters(num_threads=0)

    def test_missing_input_image(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            with self.assertRaises(pydantic.ValidationError):
                StitchPairCliParameters(image1=d, image2=f"{d}/does_not_exist.tiff")
