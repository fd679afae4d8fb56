# backend/app/tasks/celery_app.py
"""
Celery application configuration.

Redis is the broker when configured; the in-memory transport keeps local
runs and tests working without one.
"""

import logging
from typing import Any, Dict

from celery import Celery
from celery.signals import setup_logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = settings.celery_broker
    celery_app = Celery("scheduling", broker=broker_url)

    base_config: Dict[str, Any] = {
        # Task settings
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": settings.scheduling_timezone,
        "enable_utc": True,
        "task_ignore_result": True,
        "task_always_eager": settings.celery_task_always_eager,
        # Worker settings
        "worker_prefetch_multiplier": 4,
        "worker_max_tasks_per_child": 1000,
        "task_soft_time_limit": 60,
        "task_time_limit": 120,
        "task_acks_late": True,
        "task_reject_on_worker_lost": True,
        "worker_hijack_root_logger": False,
    }
    celery_app.conf.update(base_config)

    celery_app.conf.imports = ("app.tasks.notification_tasks",)
    celery_app.conf.task_routes = {
        "appointments.*": {"queue": "notifications"},
    }
    return celery_app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


# Create the Celery app instance
celery_app = create_celery_app()
