"""멀티 앵글 탐지: 원본 + 180° 회전 이미지를 함께 탐지해 뒤집힌 로고 누락 방지

두 패스는 독립적이므로 병렬 실행. 결과 결합은 순서와 무관하게 결정적.
180° 패스 실패는 허용 (0° 결과만 사용, passes=1).
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from src.schemas.pipeline import DetectionResult
from src.services.cancellation import CancellationToken
from src.services.detection.base import Detector
from src.services.errors import PipelineCancelled, ProviderError
from src.services.geometry import DEDUPE_IOU_THRESHOLD, dedupe_by_iou, invert_region_180
from src.services.imaging import rotate_180
from src.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

ROTATED_RISK_FLOOR = 80


def combine_passes(
    upright: DetectionResult,
    rotated: DetectionResult,
    rotated_risk_floor: int = ROTATED_RISK_FLOOR,
    dedupe_threshold: float = DEDUPE_IOU_THRESHOLD,
) -> DetectionResult:
    """0° 결과와 180° 결과 결합

    - 180° 영역은 원본 방향으로 좌표 복원
    - 같은 객체의 중복은 0° 박스를 유지
    - 위험도는 평균이 아닌 보수적 최대값 (180°에서 영역이 나오면 최소 floor)
    """
    inverted = [invert_region_180(r) for r in rotated.regions]
    regions = dedupe_by_iou([*upright.regions, *inverted], dedupe_threshold)

    risk_score = upright.risk_score
    if inverted:
        risk_score = max(risk_score, rotated_risk_floor)

    return DetectionResult(
        brands=[*upright.brands, *rotated.brands],
        risk_score=risk_score,
        regions=regions,
        passes=2,
    )


def detect_multi_angle(
    detector: Detector,
    image: np.ndarray,
    retry: RetryPolicy | None = None,
    cancel: CancellationToken | None = None,
    rotated_risk_floor: int = ROTATED_RISK_FLOOR,
    dedupe_threshold: float = DEDUPE_IOU_THRESHOLD,
) -> DetectionResult:
    """0°/180° 병렬 탐지 후 결합

    Raises:
        ProviderError: 0° 패스가 재시도 후에도 실패한 경우 (180° 실패는 종류와 무관하게 무시)
        PipelineCancelled: 취소됨
    """
    policy = retry or RetryPolicy(max_retries=0)
    rotated_image = rotate_180(image)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="detect") as executor:
        upright_future = executor.submit(
            policy.call, detector.detect, image, label="Detection 0°", cancel=cancel
        )
        rotated_future = executor.submit(
            policy.call, detector.detect, rotated_image, label="Detection 180°", cancel=cancel
        )

        upright = upright_future.result()
        try:
            rotated = rotated_future.result()
        except PipelineCancelled:
            raise
        except ProviderError as e:
            logger.warning(f"180° 탐지 실패, 0° 결과만 사용: {e}")
            return upright.model_copy(update={"passes": 1})
        except Exception as e:
            logger.exception(f"180° 탐지 예외, 0° 결과만 사용: {e}")
            return upright.model_copy(update={"passes": 1})

    combined = combine_passes(upright, rotated, rotated_risk_floor, dedupe_threshold)
    logger.info(
        f"멀티 앵글 탐지 완료: risk={upright.risk_score}/{rotated.risk_score} → "
        f"{combined.risk_score}, regions={len(upright.regions)}+{len(rotated.regions)} → "
        f"{len(combined.regions)}"
    )
    return combined
