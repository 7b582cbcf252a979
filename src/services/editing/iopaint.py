"""IOPaint LaMa Inpainting (HuggingFace Space)"""

import logging
from collections.abc import Sequence

import httpx
import numpy as np

from src.services.editing.base import EditHint, EditingError
from src.services.errors import classify_http_error
from src.services.imaging import ImageDecodeError, decode_image, to_base64

logger = logging.getLogger(__name__)

IOPAINT_SPACE_URL = "https://sanster-iopaint-lama.hf.space"


class IOPaintInpainting:
    """IOPaint HuggingFace Space를 사용한 LaMa 마스크 인페인팅

    Note: Space가 sleep 상태면 첫 호출이 타임아웃될 수 있음 (재시도 대상).
    """

    def __init__(self, space_url: str = IOPAINT_SPACE_URL, timeout: int = 120) -> None:
        self.space_url = space_url.rstrip("/")
        self.timeout = timeout

    def edit(self, image: np.ndarray, hint: EditHint, brands: Sequence[str]) -> np.ndarray:
        if hint.mask is None:
            raise EditingError("IOPaint는 마스크가 필요합니다")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(
                    f"{self.space_url}/api/v1/inpaint",
                    json={"image": to_base64(image), "mask": to_base64(hint.mask)},
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(e, EditingError) from e

        try:
            result = decode_image(resp.content)
        except ImageDecodeError as e:
            raise EditingError(f"결과 이미지 변환 실패: {e}") from e

        logger.info("IOPaint inpainting 완료")
        return result
