"""Detection Protocol

교체 가능한 브랜드 탐지 구현을 위한 인터페이스 정의.
영역 좌표는 0~1000 정규화 좌표 (Box2D).
"""

from typing import Protocol

import numpy as np

from src.schemas.pipeline import DetectionResult
from src.services.errors import ProviderError


class DetectionError(ProviderError):
    pass


class Detector(Protocol):
    """브랜드 로고/텍스트 탐지 인터페이스

    구현체:
    - GeminiDetection: Google Gemini API
    """

    def detect(self, image: np.ndarray) -> DetectionResult:
        """이미지에서 브랜드 영역 탐지

        Args:
            image: RGB 이미지

        Returns:
            DetectionResult: 브랜드 목록, 위험도(0~100), 영역 (passes=1)

        Raises:
            TransientProviderError: 네트워크/5xx (재시도 대상)
            DetectionError: 그 외 실패
        """
        ...
