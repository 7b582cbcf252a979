from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0

    # App
    base_url: str = "http://localhost:8000"

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    celery_queue: str = "remediation"
    task_soft_time_limit: int = 300  # SoftTimeLimitExceeded
    task_time_limit: int = 360  # 강제 종료

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    # Gemini API
    gemini_api_key: str = ""
    gemini_detection_model: str = "gemini-2.5-flash"
    gemini_verification_model: str = "gemini-2.5-flash"
    gemini_edit_model: str = "gemini-2.5-flash-image"

    # Replicate API
    replicate_api_token: str = ""
    qwen_model: str = "qwen/qwen-image-edit"

    # ClipDrop / IOPaint
    clipdrop_api_key: str = ""
    clipdrop_url: str = "https://clipdrop-api.co/cleanup/v1"
    iopaint_space_url: str = "https://sanster-iopaint-lama.hf.space"
    provider_timeout: int = 120

    # Providers
    detection_provider: str = "gemini"  # "gemini"
    verification_provider: str = "gemini"  # "gemini"
    content_aware_provider: str = "gemini"  # "gemini" | "qwen"
    mask_guided_provider: str = "clipdrop"  # "clipdrop" | "iopaint" | "none"

    # Pipeline
    pipeline_mode: str = "safe"  # "safe" | "prime" | "clipdrop" | "fast"
    clean_risk_threshold: int = 50
    residual_risk_threshold: int = 40
    masked_risk_score: int = 35  # 마스킹 완료 시 강제 점수 (비즈니스 정책)
    remediation_strategy: Literal["occlusion", "pixelation"] = "occlusion"  # 잔여 영역 처리
    verification_fallback_risk_score: int = 50
    mask_coverage_ceiling: float = 0.5
    mask_padding_px: int = 5
    occlusion_padding_px: int = 20
    max_image_dimension: int = 2048

    # Structural validation
    structural_compare_size: int = 512
    structural_pixel_threshold: int = 50
    structural_max_avg_diff: float = 30.0
    structural_max_significant_ratio: float = 0.2

    # Retry
    retry_max_retries: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 10.0
    retry_backoff_multiplier: float = 2.0

    # Concurrency
    batch_concurrency: int = 2
    provider_concurrency: int = 4
    run_timeout: int = 280  # task_soft_time_limit보다 짧게


@lru_cache
def get_settings() -> Settings:
    return Settings()
