"""Gemini 기반 브랜드 탐지 구현체"""

# pyright: reportMissingTypeStubs=false

import logging

import numpy as np
from google import genai
from google.genai import types

from src.schemas.pipeline import DetectionResult
from src.services.detection.base import DetectionError
from src.services.genai_utils import (
    classify_gemini_error,
    clamp_score,
    parse_brands,
    parse_json_object,
    parse_regions,
)
from src.services.imaging import encode_png

logger = logging.getLogger(__name__)

DETECT_PROMPT = """Analyze this product photo for brand identifiers: logos, brand names,
emblems, distinctive trademarked patterns or stripes.

Return a JSON object only:
{
  "brands": ["Nike"],
  "riskScore": 0-100,
  "regions": [
    {"brand": "Nike", "type": "logo" | "text" | "emblem", "confidence": 0-100,
     "box_2d": [ymin, xmin, ymax, xmax]}
  ]
}

Rules:
- box_2d uses normalized coordinates from 0 to 1000
- riskScore is how recognizable any brand remains (0 = none, 100 = obvious)
- include every occurrence, even small, partial, upside-down or mirrored
- empty "brands" and "regions" with a low riskScore if nothing is found"""


class GeminiDetection:
    """Google Gemini API를 사용한 브랜드 탐지"""

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self._model = model

    def detect(self, image: np.ndarray) -> DetectionResult:
        """Raises:
        DetectionError: API 키 누락, 빈 응답, 파싱 실패 등
        TransientProviderError: 5xx/429/네트워크 오류
        """
        if not self._api_key:
            raise DetectionError("GEMINI_API_KEY가 설정되지 않았습니다")

        client = genai.Client(api_key=self._api_key)
        part = types.Part.from_bytes(data=encode_png(image), mime_type="image/png")

        try:
            response = client.models.generate_content(
                model=self._model,
                contents=[DETECT_PROMPT, part],
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    temperature=0,
                ),
            )
        except Exception as e:
            raise classify_gemini_error(e, DetectionError) from e

        data = parse_json_object(response.text, DetectionError)
        regions = parse_regions(data.get("regions"))
        brands = parse_brands(data.get("brands"), DetectionError)
        brands.extend(r.brand for r in regions if r.brand != "unknown")

        result = DetectionResult(
            brands=brands,
            risk_score=clamp_score(data.get("riskScore")),
            regions=regions,
            passes=1,
        )
        logger.info(
            f"Detection 완료: brands={list(result.brands)}, risk={result.risk_score}, "
            f"regions={len(result.regions)}"
        )
        return result
