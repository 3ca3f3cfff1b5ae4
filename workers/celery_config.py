"""Celery configuration for background review processing."""

from kombu import Exchange, Queue

from core.config import settings

# Broker configuration (Redis)
broker_url = settings.celery_broker_url
result_backend = settings.celery_result_backend

# Task routing and serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Task execution settings
task_track_started = True
task_time_limit = 30 * 60  # 30 minutes hard limit
task_soft_time_limit = 25 * 60  # 25 minutes soft limit

# Worker settings
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000
# Keep the JSON formatter installed by setup_logging
worker_hijack_root_logger = False

# Queue configuration with routing
default_exchange = Exchange("reviews", type="direct")
task_default_queue = "default"
task_queues = (
    Queue("default", exchange=default_exchange, routing_key="default"),
    Queue("normalization", exchange=default_exchange, routing_key="normalization"),
)

# Task routing
task_routes = {
    "workers.tasks.normalization.*": {"queue": "normalization"},
}

# Periodic normalization; 0 minutes disables it
beat_schedule = {}
if settings.normalization_schedule_minutes > 0:
    beat_schedule["normalize-ratings"] = {
        "task": "workers.tasks.normalization.run_normalization",
        "schedule": settings.normalization_schedule_minutes * 60.0,
    }

# Result backend settings
result_expires = 3600  # Results expire after 1 hour
