import re


class RemediationId:
    PREFIX = "rm_"
    PATTERN = re.compile(r"^rm_[a-f0-9]{8}$")


class TTL:
    DATA = 60 * 60 * 24  # 24시간 (remediation 메타데이터/결과)
    CELERY_RESULT = 60 * 60 * 2


class RedisPrefix:
    REMEDIATION = "remediation"
    RESULT = "remediation_result"


class Limits:
    MAX_BRANDS = 20
    MAX_BRAND_LENGTH = 50
    MAX_BATCH_SIZE = 50


# 탐지 실패 시 가정하는 브랜드 (탐지 없이 편집하는 fast 모드에서도 사용)
DEFAULT_GENERIC_BRANDS = ("Nike", "Adidas", "Jordan")
