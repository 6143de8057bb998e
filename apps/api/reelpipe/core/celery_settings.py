import os


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v and v.strip() else default


def is_test_env() -> bool:
    return os.getenv("ENV", "local") == "test"


def broker_url() -> str:
    return _env("CELERY_BROKER_URL") or _env("REDIS_URL") or "redis://localhost:6379/0"


def result_backend() -> str:
    # Eager runs in tests never touch redis
    if is_test_env():
        return _env("CELERY_RESULT_BACKEND") or "cache+memory://"
    return _env("CELERY_RESULT_BACKEND") or broker_url()
