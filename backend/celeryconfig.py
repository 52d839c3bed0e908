"""
Celery configuration for the workbook parse workers.

Loaded by `celery_app.config_from_object("celeryconfig")` in app/tasks/__init__.py.
All broker/result-backend URLs come from environment variables,
defaulting to localhost for local dev.
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# ═══════════════════════════════════════════════════════════
#  Serialization: JSON only
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Worker pool: bounded parse concurrency
# ═══════════════════════════════════════════════════════════

worker_concurrency = int(os.getenv("PARSE_WORKER_CONCURRENCY", "4"))

# One task per worker process at a time; a large workbook must not
# hold queued uploads hostage in its prefetch buffer
worker_prefetch_multiplier = 1

task_acks_late = True
task_reject_on_worker_lost = True

# Workbook parsing is CPU + memory heavy; recycle processes regularly
worker_max_tasks_per_child = 50

# ═══════════════════════════════════════════════════════════
#  Timeouts & retries
# ═══════════════════════════════════════════════════════════

task_soft_time_limit = int(os.getenv("PARSE_SOFT_TIME_LIMIT", "600"))  # raises SoftTimeLimitExceeded
task_time_limit = int(os.getenv("PARSE_TIME_LIMIT", "660"))            # hard kill

result_expires = 86400

# Keep revoked task IDs across worker restarts so cancellations stick
worker_state_db = os.getenv("CELERY_WORKER_STATE_DB") or None

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
# Run the parse workers on their own queue:
#   celery -A app.tasks worker -Q parsing

task_routes = {
    "app.tasks.parsing_tasks.*": {"queue": "parsing"},
}

task_default_queue = "default"

# Local development without a broker: CELERY_TASK_ALWAYS_EAGER=1
task_always_eager = os.getenv("CELERY_TASK_ALWAYS_EAGER", "").lower() in ("1", "true", "yes")

# ═══════════════════════════════════════════════════════════
#  Beat schedule
# ═══════════════════════════════════════════════════════════
# A hard time limit kills the worker before the ledger is settled; the
# sweep fails uploads left queued for too long.  Run with:
#   celery -A app.tasks beat

beat_schedule = {
    "sweep-stale-uploads": {
        "task": "app.tasks.parsing_tasks.sweep_stale_uploads",
        "schedule": float(os.getenv("STALE_SWEEP_INTERVAL", "600")),
    },
}
