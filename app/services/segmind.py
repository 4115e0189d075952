from __future__ import annotations

import base64
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..config import settings
from ..utils.formatting import format_bytes

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/png;base64,"

# Fixed generation parameters for the segfit integration.
GENERATION_PARAMS: Dict[str, Any] = {
    "model_type": "Balanced",
    "cn_strength": 0.35,
    "cn_end": 0.35,
    "image_format": "png",
    "image_quality": 90,
    "seed": 42,
    "base64": True,
}


class GenerationError(Exception):
    pass


class UpstreamError(GenerationError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Segmind API Error: {status_code}")


class UpstreamResponseError(GenerationError):
    pass


def _field(name: str) -> Callable[[dict], Optional[str]]:
    def extract(payload: dict) -> Optional[str]:
        value = payload.get(name)
        return value if isinstance(value, str) and value else None
    extract.__name__ = f"field_{name}"
    return extract


# Tried in order, first match wins.
EXTRACTORS: List[Callable[[dict], Optional[str]]] = [_field("base64"), _field("image")]


def extract_image(payload: dict) -> str:
    for extractor in EXTRACTORS:
        found = extractor(payload)
        if found:
            return found
    raise UpstreamResponseError(
        f"Segmind response did not contain an image (keys: {sorted(payload)})"
    )


def to_data_uri(data: str) -> str:
    return data if data.startswith("data:") else f"{DATA_URI_PREFIX}{data}"


class SegmindClient:
    def __init__(self, api_key: str, url: str | None = None, timeout: float | None = None,
                 transport: httpx.BaseTransport | None = None):
        self.api_key = api_key
        self.url = url or settings.segmind_url
        self.timeout = settings.upstream_timeout_seconds if timeout is None else timeout
        self.transport = transport

    def build_payload(self, person_b64: str, clothing_b64: str) -> dict:
        return {
            "outfit_image": clothing_b64,
            "model_image": person_b64,
            **GENERATION_PARAMS,
        }

    def generate(self, person_b64: str, clothing_b64: str) -> str:
        """Run one try-on generation and return a displayable data URI.

        Raises ``UpstreamError`` on a non-2xx answer, ``UpstreamResponseError`` when a
        2xx body carries no image, and lets httpx transport errors (including
        ``httpx.TimeoutException``) propagate.
        """
        payload = self.build_payload(person_b64, clothing_b64)
        headers = {"x-api-key": self.api_key}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            r = client.post(self.url, json=payload, headers=headers)

        logger.info("Segmind responded %s (%s)", r.status_code, format_bytes(len(r.content)))
        if r.is_error:
            raise UpstreamError(r.status_code, r.text)
        return self._parse(r)

    @staticmethod
    def _parse(r: httpx.Response) -> str:
        content_type = r.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type.startswith("image/"):
            encoded = base64.b64encode(r.content).decode()
            return f"data:{content_type};base64,{encoded}"
        try:
            payload = r.json()
        except ValueError as exc:
            raise UpstreamResponseError(f"Segmind response was not JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise UpstreamResponseError("Segmind response was not a JSON object")
        return to_data_uri(extract_image(payload))
