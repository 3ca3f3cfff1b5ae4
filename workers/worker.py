"""Worker script to run Celery workers."""

from workers.celery_app import celery_app
from workers.tasks import normalization  # noqa: F401

if __name__ == "__main__":
    celery_app.worker_main(
        argv=[
            "worker",
            "--loglevel=info",
            "--concurrency=1",
            "-Q",
            "default,normalization",
        ]
    )
