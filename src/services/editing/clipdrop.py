"""ClipDrop Cleanup API 기반 마스크 inpainting"""

import logging
from collections.abc import Sequence

import httpx
import numpy as np

from src.services.editing.base import EditHint, EditingError
from src.services.errors import classify_http_error
from src.services.imaging import ImageDecodeError, decode_image, encode_png

logger = logging.getLogger(__name__)

CLIPDROP_CLEANUP_URL = "https://clipdrop-api.co/cleanup/v1"


class ClipDropInpainting:
    """ClipDrop Cleanup API (마스크 영역만 정밀 제거, 작고 정확한 마스크에서 품질이 좋음)"""

    def __init__(self, api_key: str, url: str = CLIPDROP_CLEANUP_URL, timeout: int = 120) -> None:
        self._api_key = api_key
        self._url = url
        self._timeout = timeout

    def edit(self, image: np.ndarray, hint: EditHint, brands: Sequence[str]) -> np.ndarray:
        if hint.mask is None:
            raise EditingError("ClipDrop은 마스크가 필요합니다")
        if not self._api_key:
            raise EditingError("CLIPDROP_API_KEY가 설정되지 않았습니다")

        files = {
            "image_file": ("image.png", encode_png(image), "image/png"),
            "mask_file": ("mask.png", encode_png(hint.mask), "image/png"),
        }

        try:
            with httpx.Client(timeout=self._timeout) as client:
                resp = client.post(self._url, files=files, headers={"x-api-key": self._api_key})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(e, EditingError) from e

        try:
            result = decode_image(resp.content)
        except ImageDecodeError as e:
            raise EditingError(f"결과 이미지 변환 실패: {e}") from e

        logger.info(f"ClipDrop inpainting 완료: brands={list(brands)}")
        return result
