"""파이프라인 에러 분류

외부 capability(Detector/Editor/Verifier) 에러만 제어 흐름(재시도/강등/폴백)에 영향을 줌.
Geometry/Mask 에러는 해당 영역만 버리고 계속 진행.
"""

import httpx

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class ProviderError(Exception):
    """외부 capability 호출 실패 (재시도 안 함)"""


class TransientProviderError(ProviderError):
    """네트워크/타임아웃/5xx 등 일시적 실패 (백오프 후 재시도)"""


class DegenerateRegionError(ValueError):
    """영역의 기하 조건 위반 (크기 0 이하, 경계 밖)"""


class MaskRejected(Exception):
    """마스크 커버리지가 상한을 넘거나 비어 있음 (탐지 오류로 간주)"""

    def __init__(self, coverage: float, ceiling: float):
        self.coverage = coverage
        self.ceiling = ceiling
        super().__init__(f"마스크 커버리지 {coverage:.1%} (허용 범위: 0 < c <= {ceiling:.0%})")


class StructuralViolation(Exception):
    """편집 이미지가 원본 구조를 과도하게 훼손"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class UnrecoverableError(Exception):
    """어떤 전략으로도 이미지를 만들지 못함 (유일한 Failed 원인)"""


class PipelineCancelled(Exception):
    """데드라인 초과 또는 명시적 취소"""


def classify_http_error(e: Exception, error_cls: type[ProviderError]) -> ProviderError:
    """httpx 예외를 일시적/영구적 에러로 분류

    Args:
        e: 원본 예외
        error_cls: 영구 실패 시 사용할 capability별 에러 클래스
    """
    if isinstance(e, httpx.TimeoutException | httpx.TransportError):
        return TransientProviderError(f"네트워크 오류: {e}")
    if isinstance(e, httpx.HTTPStatusError):
        code = e.response.status_code
        if code in RETRYABLE_STATUS_CODES:
            return TransientProviderError(f"일시적 API 오류: {code}")
        return error_cls(f"API 오류: {code}")
    return error_cls(f"API 호출 실패: {e}")
