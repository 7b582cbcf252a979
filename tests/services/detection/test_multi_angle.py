"""멀티 앵글 탐지 결합 테스트"""

import numpy as np
import pytest

from src.schemas.pipeline import DetectionResult
from src.services.detection import DetectionError, combine_passes, detect_multi_angle
from src.services.errors import PipelineCancelled, TransientProviderError
from tests.conftest import box_region, no_wait_retry


def _marked_image() -> np.ndarray:
    """좌상단에 표식이 있는 이미지 (180° 회전 시 우하단으로 이동)"""
    image = np.zeros((40, 60, 3), dtype=np.uint8)
    image[0, 0] = 255
    return image


class AngleAwareDetector:
    """입력이 원본인지 회전본인지에 따라 다른 결과 반환"""

    def __init__(
        self,
        upright: DetectionResult | Exception,
        rotated: DetectionResult | Exception,
    ) -> None:
        self.upright = upright
        self.rotated = rotated
        self.calls = {"upright": 0, "rotated": 0}

    def detect(self, image: np.ndarray) -> DetectionResult:
        key = "upright" if image[0, 0, 0] == 255 else "rotated"
        self.calls[key] += 1
        result = self.upright if key == "upright" else self.rotated
        if isinstance(result, Exception):
            raise result
        return result


UPRIGHT = DetectionResult(
    brands=["Nike"], risk_score=40, regions=[box_region(100, 100, 200, 200)], passes=1
)
ROTATED = DetectionResult(
    brands=["Jordan"],
    risk_score=20,
    regions=[box_region(0, 0, 100, 100, brand="Jordan")],
    passes=1,
)
EMPTY = DetectionResult(brands=[], risk_score=10, regions=[], passes=1)


class TestCombinePasses:
    def test_inverts_rotated_regions(self) -> None:
        combined = combine_passes(UPRIGHT, ROTATED)

        assert combined.passes == 2
        assert combined.brands == ("Nike", "Jordan")
        assert len(combined.regions) == 2
        rotated_region = combined.regions[1]
        assert rotated_region.source_angle == 180
        assert rotated_region.box_2d is not None
        assert rotated_region.box_2d.to_list() == [900, 900, 1000, 1000]

    def test_rotated_regions_raise_risk_to_floor(self) -> None:
        assert combine_passes(UPRIGHT, ROTATED).risk_score == 80

    def test_keeps_higher_upright_risk(self) -> None:
        upright = UPRIGHT.model_copy(update={"risk_score": 95})
        assert combine_passes(upright, ROTATED).risk_score == 95

    def test_rotated_without_regions_keeps_upright_risk(self) -> None:
        assert combine_passes(UPRIGHT, EMPTY).risk_score == 40

    def test_duplicate_keeps_upright_box(self) -> None:
        # 회전본에서 같은 위치(복원 후)에 탐지된 로고
        rotated = DetectionResult(
            brands=["Nike"],
            risk_score=60,
            regions=[box_region(800, 800, 900, 900)],
        )
        combined = combine_passes(UPRIGHT, rotated)

        assert combined.regions == UPRIGHT.regions

    def test_deterministic(self) -> None:
        assert combine_passes(UPRIGHT, ROTATED) == combine_passes(UPRIGHT, ROTATED)


class TestDetectMultiAngle:
    def test_runs_both_passes(self) -> None:
        detector = AngleAwareDetector(UPRIGHT, ROTATED)

        result = detect_multi_angle(detector, _marked_image(), retry=no_wait_retry())

        assert detector.calls == {"upright": 1, "rotated": 1}
        assert result.passes == 2
        assert result.risk_score == 80

    def test_rotated_failure_uses_upright_only(self) -> None:
        detector = AngleAwareDetector(UPRIGHT, DetectionError("bad response"))

        result = detect_multi_angle(detector, _marked_image(), retry=no_wait_retry())

        assert result.passes == 1
        assert result.regions == UPRIGHT.regions
        assert result.risk_score == 40

    def test_rotated_unexpected_error_uses_upright_only(self) -> None:
        detector = AngleAwareDetector(UPRIGHT, RuntimeError("parser bug"))

        result = detect_multi_angle(detector, _marked_image(), retry=no_wait_retry())

        assert detector.calls["rotated"] == 1
        assert result.passes == 1
        assert result.regions == UPRIGHT.regions

    def test_rotated_cancellation_propagates(self) -> None:
        detector = AngleAwareDetector(UPRIGHT, PipelineCancelled("deadline"))

        with pytest.raises(PipelineCancelled):
            detect_multi_angle(detector, _marked_image(), retry=no_wait_retry())

    def test_rotated_transient_failure_is_retried_then_tolerated(self) -> None:
        detector = AngleAwareDetector(UPRIGHT, TransientProviderError("503"))

        result = detect_multi_angle(detector, _marked_image(), retry=no_wait_retry(2))

        assert detector.calls["rotated"] == 3
        assert result.passes == 1

    def test_upright_failure_raises(self) -> None:
        detector = AngleAwareDetector(DetectionError("bad response"), ROTATED)

        with pytest.raises(DetectionError):
            detect_multi_angle(detector, _marked_image(), retry=no_wait_retry())
