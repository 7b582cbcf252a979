"""Gemini Image 기반 content-aware 브랜드 제거"""

# pyright: reportMissingTypeStubs=false

import io
import logging
from collections.abc import Sequence

import numpy as np
from google import genai
from google.genai import types
from PIL import Image

from src.services.editing.base import EditHint, EditingError, removal_prompt
from src.services.genai_utils import classify_gemini_error

logger = logging.getLogger(__name__)


class GeminiImageEditor:
    """Gemini Image Generation API를 사용한 프롬프트 기반 편집 (마스크 불필요)"""

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self._model = model

    def edit(self, image: np.ndarray, hint: EditHint, brands: Sequence[str]) -> np.ndarray:
        if not self._api_key:
            raise EditingError("GEMINI_API_KEY가 설정되지 않았습니다")

        client = genai.Client(api_key=self._api_key)
        prompt = removal_prompt(brands, hint.regions, hint.aggressive)

        try:
            response = client.models.generate_content(
                model=self._model,
                contents=[prompt, Image.fromarray(np.ascontiguousarray(image))],
                config=types.GenerateContentConfig(
                    response_modalities=["TEXT", "IMAGE"],
                ),
            )
        except Exception as e:
            raise classify_gemini_error(e, EditingError) from e

        if response.parts is None:
            raise EditingError("응답에 parts가 없습니다")

        for part in response.parts:
            if part.inline_data is not None and part.inline_data.data is not None:
                with Image.open(io.BytesIO(part.inline_data.data)) as result:
                    logger.info(f"Gemini 편집 완료: aggressive={hint.aggressive}")
                    return np.array(result.convert("RGB"))

        raise EditingError("응답에 이미지가 없습니다")
