"""
Celery application factory.
"""

from celery import Celery

# Task modules are imported when the worker starts
celery_app = Celery("advisor_ingest", include=["app.tasks.parsing_tasks"])
celery_app.config_from_object("celeryconfig")
