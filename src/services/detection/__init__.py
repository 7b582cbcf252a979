"""Detection 모듈

사용법:
    from src.services.detection import get_detection

    detector = get_detection()
    result = detector.detect(image)

백엔드 선택 (.env DETECTION_PROVIDER):
    - "gemini": Google Gemini API (기본값)

멀티 앵글(0°/180°) 결합은 detect_multi_angle()로 백엔드와 무관하게 적용.
"""

from src.config import get_settings
from src.services.detection.base import DetectionError, Detector
from src.services.detection.gemini import GeminiDetection
from src.services.detection.multi_angle import combine_passes, detect_multi_angle

__all__ = [
    "DetectionError",
    "Detector",
    "combine_passes",
    "detect_multi_angle",
    "get_detection",
    "set_detection",
]

_detector: Detector | None = None


def get_detection() -> Detector:
    """설정에 따라 detection 백엔드 반환"""
    global _detector
    if _detector is None:
        settings = get_settings()
        if settings.detection_provider == "gemini":
            _detector = GeminiDetection(
                api_key=settings.gemini_api_key,
                model=settings.gemini_detection_model,
            )
        else:
            raise ValueError(f"Unknown detection provider: {settings.detection_provider!r}")
    return _detector


def set_detection(detector: Detector | None) -> None:
    """detection 백엔드 설정 (테스트용)"""
    global _detector
    _detector = detector
