"""구조 검증: 편집이 브랜드 외 영역까지 훼손했는지 픽셀 차이로 판정

정상적인 브랜드 제거는 좁은 영역의 픽셀만 바꾸고,
상품 전체를 다시 그린 편집은 넓은 영역을 바꾼다.
"""

import logging

import cv2
import numpy as np

from src.schemas.pipeline import StructuralValidation
from src.services.errors import StructuralViolation

logger = logging.getLogger(__name__)

COMPARE_SIZE = 512
PIXEL_DIFF_THRESHOLD = 50  # 0~255, 이 이상 차이나면 유의미한 변화
MAX_AVG_DIFF = 30.0
MAX_SIGNIFICANT_RATIO = 0.2
ERROR_CONFIDENCE = 50


class StructuralValidator:
    def __init__(
        self,
        compare_size: int = COMPARE_SIZE,
        pixel_threshold: int = PIXEL_DIFF_THRESHOLD,
        max_avg_diff: float = MAX_AVG_DIFF,
        max_significant_ratio: float = MAX_SIGNIFICANT_RATIO,
    ) -> None:
        self.compare_size = compare_size
        self.pixel_threshold = pixel_threshold
        self.max_avg_diff = max_avg_diff
        self.max_significant_ratio = max_significant_ratio

    def validate(self, original: np.ndarray, edited: np.ndarray) -> StructuralValidation:
        """원본/편집 이미지 비교

        검증 자체가 실패하면 파이프라인을 막지 않도록 valid(신뢰도 50)로 처리.
        """
        try:
            return self._compare(original, edited)
        except Exception as e:
            logger.warning(f"구조 검증 오류, 통과 처리: {e}")
            return StructuralValidation(
                is_valid=True,
                confidence=ERROR_CONFIDENCE,
                reason=f"검증 오류: {e}",
            )

    def ensure_valid(self, original: np.ndarray, edited: np.ndarray) -> StructuralValidation:
        """validate 후 무효면 예외

        Raises:
            StructuralViolation: 편집이 구조를 훼손함
        """
        validation = self.validate(original, edited)
        if not validation.is_valid:
            raise StructuralViolation(validation.reason or "구조 검증 실패")
        return validation

    def _compare(self, original: np.ndarray, edited: np.ndarray) -> StructuralValidation:
        size = self._fit_size(original)
        gray_a = self._prepare(original, size)
        gray_b = self._prepare(edited, size)

        diff = np.abs(gray_a - gray_b)
        avg_diff = float(np.mean(diff))
        significant_ratio = float(np.count_nonzero(diff > self.pixel_threshold)) / diff.size

        is_valid = avg_diff < self.max_avg_diff and significant_ratio < self.max_significant_ratio
        confidence = round(100 - avg_diff - significant_ratio * 100)
        confidence = min(100, max(0, confidence))

        reason = None
        if not is_valid:
            reason = (
                f"과도한 변경: 평균 차이 {avg_diff:.1f} (기준 {self.max_avg_diff}), "
                f"유의미한 변화 {significant_ratio:.1%} (기준 {self.max_significant_ratio:.0%})"
            )

        logger.info(
            f"구조 검증: avg={avg_diff:.1f}, significant={significant_ratio:.1%}, valid={is_valid}"
        )
        return StructuralValidation(
            is_valid=is_valid,
            confidence=confidence,
            reason=reason,
            avg_diff=avg_diff,
            significant_diff_ratio=significant_ratio,
        )

    def _fit_size(self, image: np.ndarray) -> tuple[int, int]:
        """비율 유지하며 compare_size 안에 맞는 (width, height)"""
        h, w = image.shape[:2]
        scale = min(self.compare_size / w, self.compare_size / h, 1.0)
        return max(1, round(w * scale)), max(1, round(h * scale))

    def _prepare(self, image: np.ndarray, size: tuple[int, int]) -> np.ndarray:
        if len(image.shape) == 3:
            code = cv2.COLOR_RGBA2GRAY if image.shape[2] == 4 else cv2.COLOR_RGB2GRAY
            image = cv2.cvtColor(image, code)
        return cv2.resize(image, size, interpolation=cv2.INTER_AREA).astype(np.int16)
