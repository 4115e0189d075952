"""Polling client for the try-on job API.

This is the client library callers (UI backends, scripts) use to submit a job and
wait for its result; the service itself never imports it.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "Image generation timed out. Please try again."


class PollerState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    DONE_SUCCESS = "done-success"
    DONE_FAILURE = "done-failure"


class JobPoller:
    """Client side of the job protocol: submit once, then poll until terminal.

    Giving up (timeout or error) only stops polling; the server-side job keeps
    running and is never cancelled.
    """

    def __init__(self, client: httpx.Client, interval: float | None = None,
                 timeout: float | None = None, sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.interval = settings.poll_interval_seconds if interval is None else interval
        self.timeout = settings.poll_timeout_seconds if timeout is None else timeout
        self.sleep = sleep
        self.clock = clock
        self.state = PollerState.IDLE
        self.job_id: Optional[str] = None
        self.image_url: Optional[str] = None
        self.error: Optional[str] = None
        self.polls = 0

    def submit(self, person_image: bytes, clothing_image: bytes, api_key: str) -> Optional[str]:
        self.state = PollerState.SUBMITTING
        files = {
            "personImage": ("person.jpg", person_image, "application/octet-stream"),
            "clothingImage": ("clothing.jpg", clothing_image, "application/octet-stream"),
        }
        try:
            r = self.client.post("/api/generate", files=files, data={"apiKey": api_key})
            data = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            return self._fail(f"Could not start the generation process: {exc}")
        if not isinstance(data, dict):
            return self._fail(f"Unexpected response from the server (HTTP {r.status_code}).")

        if r.is_error:
            return self._fail(data.get("error") or "Could not start the generation process.")
        job_id = data.get("jobId")
        if not job_id:
            return self._fail("Did not receive a job ID from the server.")

        self.job_id = job_id
        self.state = PollerState.POLLING
        return job_id

    def wait(self, job_id: str | None = None) -> PollerState:
        job_id = job_id or self.job_id
        self.job_id = job_id
        self.state = PollerState.POLLING
        start = self.clock()
        while self.state == PollerState.POLLING:
            self.sleep(self.interval)
            if self.clock() - start > self.timeout:
                logger.warning("[%s] Gave up polling after %ss", job_id, self.timeout)
                self._fail(TIMEOUT_ERROR)
                break
            self._poll_once(job_id)
        return self.state

    def run(self, person_image: bytes, clothing_image: bytes, api_key: str) -> PollerState:
        job_id = self.submit(person_image, clothing_image, api_key)
        if job_id is None:
            return self.state
        return self.wait(job_id)

    def _poll_once(self, job_id: str):
        self.polls += 1
        try:
            data = self.client.get(f"/api/status/{job_id}").json()
        except (httpx.HTTPError, ValueError) as exc:
            self._fail(f"Failed to check job status: {exc}")
            return
        if not isinstance(data, dict):
            self._fail("Failed to check job status: unexpected response body")
            return

        status = data.get("status")
        if status == "completed":
            if data.get("imageUrl"):
                self.image_url = data["imageUrl"]
                self.state = PollerState.DONE_SUCCESS
            else:
                self._fail("The final result did not contain an image URL.")
        elif status == "failed":
            self._fail(data.get("error") or "Image generation failed.")
        else:
            logger.debug("[%s] Job is %s", job_id, status)

    def _fail(self, error: str) -> None:
        self.error = error
        self.state = PollerState.DONE_FAILURE
        return None
