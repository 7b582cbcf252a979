from celery import Celery

from src.config import get_settings
from src.constants import TTL

settings = get_settings()

REMEDIATE_TASK = "src.infra.workers.remediate_job.remediate_job"

celery_app = Celery(
    "brandclean",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    result_expires=TTL.CELERY_RESULT,
    imports=["src.infra.workers.remediate_job"],
    # 이미지 1장당 수십 초~수 분: 워커당 1개씩, 완료 후 ack
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue=settings.celery_queue,
    task_routes={REMEDIATE_TASK: {"queue": settings.celery_queue}},
    task_soft_time_limit=settings.task_soft_time_limit,
    task_time_limit=settings.task_time_limit,
)
