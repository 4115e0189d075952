import logging
import time

import orjson
import redis

from .schema import JobRecord
from ..config import settings

logger = logging.getLogger(__name__)


class Repo:
    """Job Store: one JSON document per job under ``job:<id>``, last write wins."""

    def __init__(self, client=None, ttl_seconds: int | None = None):
        self.r = client if client is not None else redis.from_url(settings.redis_url)
        self.ttl = settings.job_ttl_seconds if ttl_seconds is None else ttl_seconds

    def _key(self, job_id: str) -> str:
        return f"job:{job_id}"

    def save(self, rec: JobRecord):
        self.r.set(self._key(rec.job_id), orjson.dumps(rec.to_json()), ex=self.ttl or None)

    def get(self, job_id: str) -> JobRecord | None:
        raw = self.r.get(self._key(job_id))
        if raw is None:
            return None
        return JobRecord.model_validate(orjson.loads(raw))

    def create_pending(self, job_id: str) -> JobRecord:
        rec = JobRecord(job_id=job_id, status="pending", created_at=time.time())
        self.save(rec)
        return rec

    def mark_completed(self, job_id: str, image_url: str, created_at: float | None = None) -> JobRecord:
        rec = JobRecord(job_id=job_id, status="completed", image_url=image_url, created_at=created_at)
        self.save(rec)
        return rec

    def mark_failed(self, job_id: str, error: str, message: str | None = None,
                    created_at: float | None = None) -> JobRecord:
        rec = JobRecord(job_id=job_id, status="failed", error=error, message=message,
                        created_at=created_at)
        self.save(rec)
        return rec

    def iter_records(self):
        for key in self.r.scan_iter(match="job:*"):
            raw = self.r.get(key)
            if raw is None:
                # expired between scan and get
                continue
            try:
                yield JobRecord.model_validate(orjson.loads(raw))
            except ValueError:
                logger.warning("Skipping unreadable job record %r", key)
