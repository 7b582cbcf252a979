"""Detection 팩토리 테스트"""

from unittest.mock import patch

import numpy as np
import pytest

from src.schemas.pipeline import DetectionResult
from src.services.detection import get_detection, set_detection
from src.services.detection.gemini import GeminiDetection


class TestGetDetection:
    def setup_method(self) -> None:
        set_detection(None)

    def teardown_method(self) -> None:
        set_detection(None)

    def test_default_returns_gemini(self) -> None:
        backend = get_detection()
        assert isinstance(backend, GeminiDetection)

    def test_returns_cached_instance(self) -> None:
        assert get_detection() is get_detection()

    def test_set_detection_overrides_factory(self) -> None:
        mock = MockDetector()
        set_detection(mock)
        assert get_detection() is mock

    def test_set_detection_none_resets(self) -> None:
        mock = MockDetector()
        set_detection(mock)
        set_detection(None)

        backend = get_detection()
        assert isinstance(backend, GeminiDetection)

    def test_unknown_provider_raises(self) -> None:
        with patch("src.services.detection.get_settings") as mock_settings:
            mock_settings.return_value.detection_provider = "unknown"
            with pytest.raises(ValueError, match="Unknown detection provider"):
                get_detection()


class MockDetector:
    def detect(self, image: np.ndarray) -> DetectionResult:
        return DetectionResult(risk_score=0)
