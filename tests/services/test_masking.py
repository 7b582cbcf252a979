"""마스크 래스터화 테스트"""

import numpy as np
import pytest

from src.schemas.pipeline import Point, Region
from src.services.errors import MaskRejected
from src.services.masking import coverage_ratio, rasterize, validate_mask
from tests.conftest import box_region

REGIONS = [box_region(100, 100, 300, 300), box_region(600, 500, 700, 900, brand="Adidas")]


class TestRasterize:
    def test_box_without_padding(self) -> None:
        mask = rasterize([box_region(0, 0, 500, 500)], 100, 100, padding_px=0)

        assert mask.shape == (100, 100)
        assert mask.dtype == np.uint8
        assert np.count_nonzero(mask) == 50 * 50
        assert mask[49, 49] == 255
        assert mask[50, 50] == 0

    def test_padding_extends_every_side(self) -> None:
        mask = rasterize([box_region(400, 400, 600, 600)], 100, 100, padding_px=5)

        # 40..60 → 35..65
        assert np.count_nonzero(mask) == 30 * 30
        assert mask[35, 35] == 255
        assert mask[34, 35] == 0

    def test_padding_clamped_to_image(self) -> None:
        mask = rasterize([box_region(0, 0, 100, 100)], 100, 100, padding_px=20)

        assert np.count_nonzero(mask) == 30 * 30
        assert mask[0, 0] == 255

    def test_deterministic(self) -> None:
        a = rasterize(REGIONS, 320, 240, padding_px=5)
        b = rasterize(REGIONS, 320, 240, padding_px=5)
        assert np.array_equal(a, b)

    @pytest.mark.parametrize("padding", [0, 1, 5, 20])
    def test_monotonic_in_padding(self, padding: int) -> None:
        smaller = rasterize(REGIONS, 320, 240, padding_px=padding)
        larger = rasterize(REGIONS, 320, 240, padding_px=padding + 3)

        assert coverage_ratio(larger) >= coverage_ratio(smaller)
        assert np.all(larger[smaller > 0] == 255)

    def test_monotonic_in_regions(self) -> None:
        subset = rasterize(REGIONS[:1], 320, 240)
        superset = rasterize(REGIONS, 320, 240)
        assert np.all(superset[subset > 0] == 255)

    def test_padding_ratio_grows_mask(self) -> None:
        plain = rasterize(REGIONS, 320, 240, padding_px=0)
        scaled = rasterize(REGIONS, 320, 240, padding_px=0, padding_ratio=0.15)
        assert coverage_ratio(scaled) > coverage_ratio(plain)

    def test_polygon(self) -> None:
        region = Region(
            brand="Nike",
            polygon=(Point(x=0.2, y=0.2), Point(x=0.8, y=0.2), Point(x=0.5, y=0.8)),
        )
        mask = rasterize([region], 101, 101, padding_px=0)

        assert mask[40, 50] == 255
        assert mask[90, 10] == 0

    def test_skips_degenerate_region(self) -> None:
        degenerate = box_region(500, 500, 500, 600)
        mask = rasterize([degenerate, box_region(0, 0, 100, 100)], 100, 100, padding_px=0)
        assert np.count_nonzero(mask) == 10 * 10

    def test_empty_regions(self) -> None:
        assert np.count_nonzero(rasterize([], 50, 50)) == 0


class TestValidateMask:
    def test_returns_coverage(self) -> None:
        mask = np.zeros((100, 100), dtype=np.uint8)
        mask[:10, :] = 255
        assert validate_mask(mask, 0.5) == pytest.approx(0.1)

    def test_rejects_empty(self) -> None:
        with pytest.raises(MaskRejected):
            validate_mask(np.zeros((10, 10), dtype=np.uint8))

    def test_rejects_above_ceiling(self) -> None:
        mask = np.zeros((100, 100), dtype=np.uint8)
        mask[:60, :] = 255

        with pytest.raises(MaskRejected) as exc_info:
            validate_mask(mask, 0.5)

        assert exc_info.value.coverage == pytest.approx(0.6)

    def test_accepts_exact_ceiling(self) -> None:
        mask = np.zeros((100, 100), dtype=np.uint8)
        mask[:50, :] = 255
        assert validate_mask(mask, 0.5) == pytest.approx(0.5)
