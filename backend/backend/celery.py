"""Celery application for the post-commit fan-out and periodic reminders."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings")

app = Celery("backend")

# Broker, result backend and eager mode come from Django settings (CELERY_*).
app.config_from_object("django.conf:settings", namespace="CELERY")

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    task_soft_time_limit=100,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

app.autodiscover_tasks()
