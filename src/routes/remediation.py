"""Remediation API 라우트

상품 이미지 업로드 + 의심 브랜드 → 브랜드 제거 작업 생성/조회.

NOTE: 오케스트레이션(저장 + service 호출 + task 트리거)을 Route에서 처리.
"""

import asyncio
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status

from src.infra.storage import get_storage
from src.infra.workers.remediate_job import remediate_job
from src.services import remediation as remediation_service
from src.services.pipeline import PipelineMode

router = APIRouter(prefix="/remediations", tags=["remediations"])
logger = logging.getLogger(__name__)

QUEUE_FAILED_MESSAGE = "작업 큐잉에 실패했습니다. 잠시 후 다시 시도해주세요."


def _parse_mode(mode: str | None) -> str:
    if not mode:
        return ""
    try:
        return PipelineMode(mode).value
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_MODE", "message": f"지원하지 않는 모드: {mode}"},
        ) from None


@router.post(
    "",
    response_model=remediation_service.RemediationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_remediation(
    file: Annotated[UploadFile, File()],
    brands: Annotated[str | None, Form()] = None,
    mode: Annotated[str | None, Form()] = None,
) -> remediation_service.RemediationResponse:
    """브랜드 제거 작업 생성"""
    try:
        brand_list = remediation_service.parse_brands(brands)
    except remediation_service.InvalidBrandsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_BRANDS", "message": e.message},
        ) from None

    selected_mode = _parse_mode(mode)

    storage = get_storage()
    image_path = await storage.save(file, subdir="original", filename=uuid.uuid4().hex[:12])

    try:
        response = remediation_service.create_remediation(image_path, brand_list, selected_mode)
    except Exception:
        storage.delete(image_path)
        raise

    try:
        await asyncio.to_thread(remediate_job.delay, response.remediation_id)
    except Exception as e:
        logger.error(f"Celery 큐잉 실패: {e}")
        try:
            remediation_service.update_status(
                response.remediation_id, "failed", QUEUE_FAILED_MESSAGE
            )
        except Exception:
            logger.error(f"상태 업데이트 실패: {response.remediation_id}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "code": "QUEUE_UNAVAILABLE",
                "message": QUEUE_FAILED_MESSAGE,
                "remediation_id": response.remediation_id,
            },
        ) from None

    return response


@router.get("/{remediation_id}", response_model=remediation_service.RemediationResponse)
async def get_remediation(remediation_id: str) -> remediation_service.RemediationResponse:
    """작업 상태/결과 조회"""
    try:
        result = remediation_service.get_remediation(remediation_id)
    except remediation_service.InvalidRemediationIdError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_REMEDIATION_ID", "message": str(e)},
        ) from None

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": "REMEDIATION_NOT_FOUND",
                "message": f"작업을 찾을 수 없습니다: {remediation_id}",
            },
        )

    return result
