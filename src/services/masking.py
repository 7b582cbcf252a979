"""영역 → 이진 마스크 래스터화

마스크: 원본 이미지와 같은 크기의 uint8 배열 (255 = 편집 대상, 0 = 유지).
rasterize는 (regions, 크기, padding)에 대한 순수 함수.
"""

import logging
import math
from collections.abc import Sequence

import cv2
import numpy as np

from src.schemas.pipeline import Region
from src.services.errors import DegenerateRegionError, MaskRejected
from src.services.geometry import region_to_pixel_box

logger = logging.getLogger(__name__)

MASK_PADDING_PX = 5
MASK_COVERAGE_CEILING = 0.5


def _region_padding(region_px: tuple[int, int], padding_px: int, padding_ratio: float) -> int:
    """고정 padding + 영역 크기 비례 padding"""
    return padding_px + math.ceil(max(region_px) * padding_ratio)


def _draw_box(mask: np.ndarray, region: Region, padding_px: int, padding_ratio: float) -> None:
    h, w = mask.shape
    box = region_to_pixel_box(region, w, h)
    pad = _region_padding((box.width, box.height), padding_px, padding_ratio)

    x1 = max(0, box.min_x - pad)
    y1 = max(0, box.min_y - pad)
    x2 = min(w, box.max_x + pad)
    y2 = min(h, box.max_y + pad)

    # cv2.rectangle은 끝점 포함
    cv2.rectangle(mask, (x1, y1), (x2 - 1, y2 - 1), 255, -1)


def _draw_polygon(mask: np.ndarray, region: Region, padding_px: int, padding_ratio: float) -> None:
    h, w = mask.shape
    box = region_to_pixel_box(region, w, h)
    pad = _region_padding((box.width, box.height), padding_px, padding_ratio)

    assert region.polygon is not None
    points = np.array(
        [[round(p.x * (w - 1)), round(p.y * (h - 1))] for p in region.polygon],
        dtype=np.int32,
    )
    cv2.fillPoly(mask, [points], 255)

    # 외곽선을 두껍게 그려 모든 방향으로 pad만큼 확장 (경계 밖은 cv2가 클리핑)
    if pad > 0:
        cv2.polylines(mask, [points], isClosed=True, color=255, thickness=2 * pad + 1)


def rasterize(
    regions: Sequence[Region],
    width: int,
    height: int,
    padding_px: int = MASK_PADDING_PX,
    padding_ratio: float = 0.0,
) -> np.ndarray:
    """영역들을 채운 이진 마스크 생성

    각 영역은 독립적으로 그려짐 (겹치면 커버리지만 누적).
    퇴화 영역은 경고 후 건너뜀.

    Args:
        regions: 박스(0~1000) 또는 polygon(0~1) 영역
        width: 이미지 너비(px)
        height: 이미지 높이(px)
        padding_px: 모든 방향 확장 픽셀
        padding_ratio: 영역 긴 변 대비 추가 확장 비율

    Returns:
        (height, width) uint8 마스크 (0 | 255)
    """
    mask = np.zeros((height, width), dtype=np.uint8)

    for region in regions:
        try:
            if region.box_2d is not None:
                _draw_box(mask, region, padding_px, padding_ratio)
            else:
                _draw_polygon(mask, region, padding_px, padding_ratio)
        except DegenerateRegionError as e:
            logger.warning(f"마스크 영역 건너뜀 ({region.brand}): {e}")

    return mask


def coverage_ratio(mask: np.ndarray) -> float:
    """마스크된 픽셀 비율 (0~1)"""
    if mask.size == 0:
        return 0.0
    return float(np.count_nonzero(mask)) / mask.size


def validate_mask(mask: np.ndarray, ceiling: float = MASK_COVERAGE_CEILING) -> float:
    """마스크 sanity check

    Returns:
        커버리지 비율

    Raises:
        MaskRejected: 비어 있거나 ceiling 초과 (탐지 오류로 간주)
    """
    coverage = coverage_ratio(mask)
    if coverage <= 0.0 or coverage > ceiling:
        raise MaskRejected(coverage, ceiling)
    return coverage
