import logging

import httpx

from ..storage.repo import Repo
from ..storage.schema import JobRecord
from ..utils.formatting import format_bytes
from .segmind import SegmindClient, UpstreamError

logger = logging.getLogger(__name__)


class TryOnJob:
    """Background side of one job: call the provider, then write one terminal record."""

    def __init__(self, job_id: str, person_b64: str, clothing_b64: str, api_key: str,
                 created_at: float | None = None, repo: Repo | None = None,
                 client: SegmindClient | None = None):
        self.job_id = job_id
        self.person_b64 = person_b64
        self.clothing_b64 = clothing_b64
        self.created_at = created_at
        self.repo = repo or Repo()
        self.client = client or SegmindClient(api_key)

    def run(self) -> JobRecord:
        logger.info("[%s] Received base64 data sizes: person=%s clothing=%s", self.job_id,
                    format_bytes(len(self.person_b64)), format_bytes(len(self.clothing_b64)))
        try:
            current = self.repo.get(self.job_id)
            if current is not None and current.is_terminal:
                logger.warning("[%s] Job is already %s, skipping generation", self.job_id, current.status)
                return current
            image_url = self.client.generate(self.person_b64, self.clothing_b64)
            logger.info("[%s] Storing result (%s)", self.job_id, format_bytes(len(image_url)))
            return self.repo.mark_completed(self.job_id, image_url, created_at=self.created_at)
        except UpstreamError as exc:
            logger.error("[%s] Segmind API error: %s %s", self.job_id, exc.status_code, exc.body)
            return self._fail(str(exc), message=exc.body)
        except httpx.TimeoutException:
            logger.error("[%s] Segmind request timed out", self.job_id)
            return self._fail(f"Segmind request timed out after {self.client.timeout:g} seconds")
        except Exception as exc:
            logger.exception("[%s] Unexpected error during generation", self.job_id)
            return self._fail(str(exc) or exc.__class__.__name__)

    def _fail(self, error: str, message: str | None = None) -> JobRecord:
        try:
            return self.repo.mark_failed(self.job_id, error, message=message,
                                         created_at=self.created_at)
        except Exception:
            logger.exception("[%s] Could not record failure; job stays pending", self.job_id)
            raise
