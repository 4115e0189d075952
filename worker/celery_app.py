import logging

from celery import Celery

from app.config import settings

logging.basicConfig(level=settings.log_level)

celery_app = Celery(
    "tryon",
    broker=settings.redis_url,
    backend=settings.redis_url,
)
celery_app.conf.update(
    task_soft_time_limit=int(settings.upstream_timeout_seconds) + 15,
    task_time_limit=int(settings.upstream_timeout_seconds) + 30,
    beat_schedule={
        "sweep-stale-jobs": {
            "task": "sweep_stale_jobs",
            "schedule": max(settings.stale_job_seconds // 3, 60),
        },
    },
)

# No autoretry: one upstream failure is terminal, clients resubmit for a new job.
@celery_app.task(name="generate_tryon")
def generate_tryon(job_id: str, person_b64: str, clothing_b64: str, api_key: str,
                   created_at: float | None = None) -> dict:
    from app.services.generator import TryOnJob
    job = TryOnJob(job_id, person_b64, clothing_b64, api_key, created_at=created_at)
    return job.run().model_dump(include={"job_id", "status", "error"})

@celery_app.task(name="sweep_stale_jobs")
def sweep_stale_jobs() -> list:
    from app.services.sweeper import sweep_stale_jobs as sweep
    return sweep()
