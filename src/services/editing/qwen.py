"""Replicate Qwen Image Edit 기반 content-aware 브랜드 제거"""

import io
import logging
from collections.abc import Sequence
from typing import Any, Protocol, cast

import httpx
import numpy as np
import replicate
from replicate.exceptions import ModelError, ReplicateError

from src.services.editing.base import EditHint, EditingError, removal_prompt
from src.services.errors import RETRYABLE_STATUS_CODES, TransientProviderError, classify_http_error
from src.services.imaging import ImageDecodeError, decode_image, encode_png

logger = logging.getLogger(__name__)


class _Readable(Protocol):
    """read() 메서드를 가진 객체"""

    def read(self) -> bytes: ...


class QwenImageEditor:
    """Replicate Qwen Image Edit 모델을 사용한 프롬프트 기반 편집"""

    def __init__(self, api_token: str, model: str = "qwen/qwen-image-edit") -> None:
        self._api_token = api_token
        self._model = model

    def edit(self, image: np.ndarray, hint: EditHint, brands: Sequence[str]) -> np.ndarray:
        if not self._api_token:
            raise EditingError("REPLICATE_API_TOKEN이 설정되지 않았습니다")

        client = replicate.Client(api_token=self._api_token)
        buffer = io.BytesIO(encode_png(image))

        try:
            output = client.run(
                self._model,
                input={
                    "image": buffer,
                    "prompt": removal_prompt(brands, hint.regions, hint.aggressive),
                    "output_format": "png",
                },
            )
        except ModelError as e:
            raise EditingError(f"Qwen 예측 실패: {e}") from e
        except ReplicateError as e:
            if e.status in RETRYABLE_STATUS_CODES:
                raise TransientProviderError(f"Replicate 일시적 오류: {e.status}") from e
            raise EditingError(f"Replicate API 오류: {e}") from e
        except httpx.HTTPError as e:
            raise classify_http_error(e, EditingError) from e
        except Exception as e:
            raise EditingError(f"Replicate API 호출 실패: {e}") from e

        result = self._convert_output(output)
        logger.info(f"Qwen 편집 완료: aggressive={hint.aggressive}")
        return result

    def _convert_output(self, output: Any) -> np.ndarray:
        """Replicate FileOutput (또는 리스트)을 RGB numpy 배열로 변환"""
        if isinstance(output, list):
            if not output:
                raise EditingError("Qwen 응답에 이미지가 없습니다")
            output = output[0]

        try:
            return decode_image(cast(_Readable, output).read())
        except (AttributeError, ImageDecodeError) as e:
            raise EditingError(f"결과 이미지 변환 실패: {e}") from e
