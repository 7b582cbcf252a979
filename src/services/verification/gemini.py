"""Gemini 기반 편집 결과 검증 구현체"""

# pyright: reportMissingTypeStubs=false

import logging
from collections.abc import Sequence

import numpy as np
from google import genai
from google.genai import types

from src.schemas.pipeline import VerificationResult
from src.services.genai_utils import (
    classify_gemini_error,
    clamp_score,
    parse_brands,
    parse_flag,
    parse_json_object,
    parse_regions,
)
from src.services.imaging import encode_png
from src.services.verification.base import VerificationError

logger = logging.getLogger(__name__)

CLEAN_RISK_THRESHOLD = 50

VERIFY_PROMPT = """This product photo was edited to remove these brands: {brands}.
Inspect it carefully for any remaining trace: logos, partial logos, brand text,
emblems, distinctive stripes or shapes that still identify the brand.

Return a JSON object only:
{{
  "isClean": true | false,
  "riskScore": 0-100,
  "remainingBrands": ["..."],
  "regions": [
    {{"brand": "...", "type": "logo" | "text" | "emblem", "confidence": 0-100,
      "box_2d": [ymin, xmin, ymax, xmax]}}
  ],
  "description": "short explanation"
}}

box_2d uses normalized coordinates from 0 to 1000."""


class GeminiVerification:
    """Google Gemini API를 사용한 잔여 브랜드 검증"""

    def __init__(
        self, api_key: str, model: str, clean_threshold: int = CLEAN_RISK_THRESHOLD
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._clean_threshold = clean_threshold

    def verify(self, image: np.ndarray, brands: Sequence[str]) -> VerificationResult:
        """Raises:
        VerificationError: API 키 누락, 빈 응답, 파싱 실패 등
        TransientProviderError: 5xx/429/네트워크 오류
        """
        if not self._api_key:
            raise VerificationError("GEMINI_API_KEY가 설정되지 않았습니다")

        client = genai.Client(api_key=self._api_key)
        part = types.Part.from_bytes(data=encode_png(image), mime_type="image/png")
        prompt = VERIFY_PROMPT.format(brands=", ".join(brands) or "any brand")

        try:
            response = client.models.generate_content(
                model=self._model,
                contents=[prompt, part],
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    temperature=0,
                ),
            )
        except Exception as e:
            raise classify_gemini_error(e, VerificationError) from e

        data = parse_json_object(response.text, VerificationError)
        risk_score = clamp_score(data.get("riskScore"))
        flagged_clean = parse_flag(data.get("isClean"), VerificationError, "isClean", default=True)
        is_clean = flagged_clean and risk_score < self._clean_threshold
        remaining = parse_brands(data.get("remainingBrands"), VerificationError, "remainingBrands")

        result = VerificationResult(
            is_clean=is_clean,
            risk_score=risk_score,
            residual_regions=parse_regions(data.get("regions")),
            remaining_brands=tuple(remaining),
            description=str(data.get("description") or ""),
        )
        logger.info(
            f"Verification 완료: clean={result.is_clean}, risk={result.risk_score}, "
            f"residual_regions={len(result.residual_regions)}"
        )
        return result
