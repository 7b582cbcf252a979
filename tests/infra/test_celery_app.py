from src.config import get_settings
from src.infra.celery_app import REMEDIATE_TASK, celery_app
from src.infra.workers.remediate_job import remediate_job


class TestCeleryApp:
    def test_task_routed_to_remediation_queue(self) -> None:
        assert remediate_job.name == REMEDIATE_TASK
        assert celery_app.conf.task_default_queue == "remediation"
        assert celery_app.conf.task_routes[REMEDIATE_TASK] == {"queue": "remediation"}

    def test_deadline_precedes_time_limits(self) -> None:
        settings = get_settings()

        assert settings.run_timeout < celery_app.conf.task_soft_time_limit
        assert celery_app.conf.task_soft_time_limit < celery_app.conf.task_time_limit

    def test_acks_after_completion(self) -> None:
        assert celery_app.conf.task_acks_late is True
        assert celery_app.conf.worker_prefetch_multiplier == 1
