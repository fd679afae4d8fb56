"""
Centralized task enqueue helper.

Always use enqueue_task() instead of task.delay() so every hand-off goes
through one place that knows the registered task names.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def enqueue_task(
    task_name: str,
    args: Optional[Tuple[Any, ...]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
    **options: Any,
) -> Any:
    """
    Enqueue a registered Celery task.

    Args:
        task_name: Registered task name (e.g., "appointments.deliver_notification")
        args: Positional arguments for the task
        kwargs: Keyword arguments for the task
        **options: Additional Celery apply_async options (countdown, eta, etc.)

    Returns:
        AsyncResult from Celery
    """
    # Registers task modules listed in conf.imports
    celery_app.loader.import_default_modules()
    task = celery_app.tasks[task_name]
    return task.apply_async(args=args or (), kwargs=kwargs or {}, **options)
