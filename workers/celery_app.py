"""Celery app factory."""

from celery import Celery

from core.config import settings
from core.middleware.logging import setup_logging

setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

celery_app = Celery("reviews")
celery_app.config_from_object("workers.celery_config")
celery_app.autodiscover_tasks(["workers.tasks"], related_name="normalization")
