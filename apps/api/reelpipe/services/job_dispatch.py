from __future__ import annotations

import uuid

from reelpipe.worker import tasks as worker_tasks


def new_task_id() -> str:
    return str(uuid.uuid4())


def dispatch_analysis(job_id: str, task_id: str | None = None):
    """
    Dispatch using the task object (.apply_async) so ENV=test eager mode works.
    Returns celery result object (EagerResult or AsyncResult).
    """
    # IMPORTANT: use task.apply_async (not celery_app.send_task)
    return worker_tasks.analyze_video.apply_async(
        kwargs={"job_id": job_id},
        task_id=task_id or new_task_id(),
    )
