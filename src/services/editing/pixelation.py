"""국소 픽셀화 + 블러 (형태/색은 유지하고 판독만 불가능하게)"""

import logging
from collections.abc import Sequence

import cv2
import numpy as np

from src.schemas.pipeline import PixelBox
from src.services.editing.base import EditHint, EditingError
from src.services.errors import DegenerateRegionError
from src.services.geometry import region_to_pixel_box
from src.services.imaging import freeze

logger = logging.getLogger(__name__)

PIXELATION_PADDING_PX = 25
SMALL_REGION_PX = 100
SMALL_PIXELATE_RATIO = 0.12
PIXELATE_RATIO = 0.20
MIN_PIXELATED_PX = 10


class PixelationEditor:
    def __init__(
        self,
        padding_px: int = PIXELATION_PADDING_PX,
        strength: float = 0.5,
        small_strength: float = 0.8,
    ) -> None:
        self.padding_px = padding_px
        self.strength = strength
        self.small_strength = small_strength

    def edit(self, image: np.ndarray, hint: EditHint, brands: Sequence[str]) -> np.ndarray:
        h, w = image.shape[:2]
        boxes = self._target_boxes(hint, w, h)
        if not boxes:
            raise EditingError("픽셀화할 영역이 없습니다")

        result = image.copy()
        for box in boxes:
            x1 = max(0, box.min_x - self.padding_px)
            y1 = max(0, box.min_y - self.padding_px)
            x2 = min(w, box.max_x + self.padding_px)
            y2 = min(h, box.max_y + self.padding_px)
            result[y1:y2, x1:x2] = self._distort(result[y1:y2, x1:x2])

        logger.info(f"Pixelation 적용: {len(boxes)}개 영역")
        return freeze(result)

    def _target_boxes(self, hint: EditHint, w: int, h: int) -> list[PixelBox]:
        boxes: list[PixelBox] = []
        for region in hint.regions:
            try:
                boxes.append(region_to_pixel_box(region, w, h))
            except DegenerateRegionError as e:
                logger.warning(f"픽셀화 영역 건너뜀 ({region.brand}): {e}")

        if not boxes and hint.mask is not None:
            contours, _ = cv2.findContours(
                (hint.mask > 0).astype(np.uint8), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
            )
            for contour in contours:
                x, y, bw, bh = cv2.boundingRect(contour)
                boxes.append(PixelBox(x, y, x + bw, y + bh))

        return boxes

    def _distort(self, patch: np.ndarray) -> np.ndarray:
        ph, pw = patch.shape[:2]
        small = min(ph, pw) < SMALL_REGION_PX
        ratio = SMALL_PIXELATE_RATIO if small else PIXELATE_RATIO
        strength = self.small_strength if small else self.strength

        down = (max(MIN_PIXELATED_PX, round(pw * ratio)), max(MIN_PIXELATED_PX, round(ph * ratio)))
        pixelated = cv2.resize(patch, down, interpolation=cv2.INTER_NEAREST)
        pixelated = cv2.resize(pixelated, (pw, ph), interpolation=cv2.INTER_NEAREST)

        # GaussianBlur 커널은 홀수
        kernel = 4 + round(strength * 12)
        kernel += 1 - kernel % 2
        return cv2.GaussianBlur(pixelated, (kernel, kernel), 0)
