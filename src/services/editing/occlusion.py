"""검정 사각형 덮기 (최후 수단, 영역/마스크만 있으면 항상 성공)"""

import logging
from collections.abc import Sequence

import numpy as np

from src.services.editing.base import EditHint, EditingError
from src.services.imaging import freeze
from src.services.masking import coverage_ratio, rasterize

logger = logging.getLogger(__name__)

OCCLUSION_PADDING_PX = 20
FILL_COLOR = (0, 0, 0)


class OcclusionEditor:
    """마스크(또는 padding된 영역 박스)를 불투명 단색으로 채움"""

    def __init__(self, padding_px: int = OCCLUSION_PADDING_PX) -> None:
        self.padding_px = padding_px

    def edit(self, image: np.ndarray, hint: EditHint, brands: Sequence[str]) -> np.ndarray:
        h, w = image.shape[:2]

        if hint.mask is not None:
            mask = hint.mask
        else:
            mask = rasterize(hint.regions, w, h, padding_px=self.padding_px)

        if mask.shape[:2] != (h, w):
            raise EditingError(f"마스크 크기 불일치: {mask.shape[:2]} != {(h, w)}")

        if coverage_ratio(mask) == 0.0:
            raise EditingError("가릴 영역이 없습니다")

        result = image.copy()
        result[mask > 0] = FILL_COLOR
        logger.info(f"Occlusion 적용: coverage={coverage_ratio(mask):.1%}")
        return freeze(result)
