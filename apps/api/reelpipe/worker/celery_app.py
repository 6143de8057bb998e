from pathlib import Path

from celery import Celery

# Load .env for BOTH API + Celery worker (worker often runs without `source .env`)
try:
    from dotenv import load_dotenv  # pip install python-dotenv
    # apps/api/reelpipe/worker/celery_app.py -> parents[2] is apps/api
    env_path = Path(__file__).resolve().parents[2] / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
except Exception:
    # Don't crash if dotenv isn't installed in some env
    pass

from reelpipe.core.celery_settings import broker_url, is_test_env, result_backend  # noqa: E402
from reelpipe.core.logging_config import configure_logging  # noqa: E402

configure_logging()

# IMPORTANT: the variable name MUST be `celery_app`
celery_app = Celery(
    "reelpipe",
    broker=broker_url(),
    backend=result_backend(),
)

# Ensure tasks are discovered
celery_app.autodiscover_tasks(["reelpipe.worker"])

celery_app.conf.update(
    task_track_started=True,
    result_extended=True,
    enable_utc=True,
    timezone="UTC",
    # ENV=test runs tasks in-process so API tests see the final job state
    task_always_eager=is_test_env(),
    # analysis is never retried automatically; a lost worker must not replay it
    task_acks_late=False,
    worker_prefetch_multiplier=1,
)

__all__ = ["celery_app"]
