"""브랜드 제거 작업 처리

Celery 워커에서 실행되는 백그라운드 태스크.
"""

import logging
from typing import Any

from celery.exceptions import SoftTimeLimitExceeded

from src.config import get_settings
from src.infra.celery_app import celery_app
from src.infra.storage import get_storage
from src.services import remediation as remediation_service
from src.services.cancellation import CancellationToken
from src.services.imaging import ImageDecodeError, decode_image
from src.services.persistence import load_record
from src.services.pipeline import PipelineConfig, build_pipeline

logger = logging.getLogger(__name__)


def _update_failed(remediation_id: str, message: str) -> None:
    try:
        remediation_service.update_status(remediation_id, "failed", error_message=message)
    except remediation_service.RemediationNotFoundError:
        logger.error(f"[{remediation_id}] 상태 업데이트 실패: 메타데이터 없음")


@celery_app.task
def remediate_job(remediation_id: str) -> dict[str, Any]:
    """브랜드 제거 태스크

    Celery 워커에서 동기적으로 실행됨.

    Timeout (설정값, celery_app 공통 적용):
        - run_timeout(기본 280초): 파이프라인 데드라인 (취소 토큰)
        - task_soft_time_limit(기본 300초): SoftTimeLimitExceeded 발생
        - task_time_limit(기본 360초): 강제 종료
    """
    logger.info(f"[{remediation_id}] 브랜드 제거 시작")

    try:
        metadata = remediation_service.get_metadata(remediation_id)
        if metadata is None:
            logger.error(f"[{remediation_id}] 메타데이터 없음")
            return {"status": "failed", "error": "작업을 찾을 수 없음"}

        remediation_service.update_status(remediation_id, "processing")

        storage = get_storage()
        if not storage.exists(metadata.image_path):
            _update_failed(remediation_id, "이미지를 찾을 수 없음")
            return {"status": "failed", "error": "이미지를 찾을 수 없음"}

        image = decode_image(storage.read_bytes(metadata.image_path))

        settings = get_settings()
        config = PipelineConfig.from_settings(settings, mode=metadata.mode)
        pipeline = build_pipeline(config=config)
        result = pipeline.run(
            image,
            product_id=remediation_id,
            brands=metadata.brands,
            cancel=CancellationToken(settings.run_timeout),
        )

        # 결과 URL은 실제로 저장된 파일만 노출
        saved = load_record(remediation_id)
        if saved is None:
            logger.warning(f"[{remediation_id}] 저장된 결과 없음, 결과 URL 생략")
        remediation_service.record_result(
            remediation_id,
            result,
            image_path=saved.image_path if saved else None,
            mask_path=saved.mask_path if saved else None,
        )

        logger.info(f"[{remediation_id}] 브랜드 제거 완료: {result.status}")
        return {"status": result.status.value, "risk_score": result.risk_score}

    except ImageDecodeError as e:
        logger.error(f"[{remediation_id}] 이미지 디코딩 오류: {e}")
        _update_failed(remediation_id, str(e))
        return {"status": "failed", "error": str(e)}

    except SoftTimeLimitExceeded:
        logger.error(f"[{remediation_id}] 시간 초과")
        _update_failed(remediation_id, "처리 시간 초과")
        return {"status": "failed", "error": "timeout"}

    except Exception as e:
        logger.exception(f"[{remediation_id}] 예외 발생: {e}")
        _update_failed(remediation_id, str(e))
        return {"status": "failed", "error": str(e)}
