import logging
import time

from ..config import settings
from ..storage.repo import Repo

logger = logging.getLogger(__name__)

ABANDONED_ERROR = "Job was abandoned before completion"


def sweep_stale_jobs(repo: Repo | None = None, max_age: float | None = None,
                     now: float | None = None) -> list[str]:
    """Fail ``pending`` jobs older than ``max_age`` seconds; return their ids.

    ``max_age`` must stay above the worker task time limit. Dispatched tasks
    expire after the same age and a worker skips jobs that are already terminal,
    so a message that sat in the queue cannot overwrite a swept record.
    """
    repo = repo or Repo()
    max_age = settings.stale_job_seconds if max_age is None else max_age
    now = time.time() if now is None else now

    swept = []
    for rec in repo.iter_records():
        if rec.is_terminal or rec.created_at is None:
            continue
        if now - rec.created_at < max_age:
            continue
        repo.mark_failed(rec.job_id, ABANDONED_ERROR, created_at=rec.created_at)
        swept.append(rec.job_id)

    if swept:
        logger.warning("Marked %d stale job(s) as failed: %s", len(swept), ", ".join(swept))
    return swept
