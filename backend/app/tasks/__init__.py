# backend/app/tasks/__init__.py
"""
Celery tasks package.

Importing the package registers the notification delivery task.
"""

from app.tasks.celery_app import celery_app
from app.tasks.notification_tasks import deliver_appointment_notification

__all__ = ["celery_app", "deliver_appointment_notification"]
