import base64
import logging
import uuid
from typing import Callable

import redis
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from ..config import settings
from ..models import ErrorResponse, GenerateRequest, JobResponse
from ..storage.repo import Repo
from ..utils.formatting import format_bytes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

repo = Repo()


def get_repo() -> Repo:
    return repo


def get_dispatcher() -> Callable[..., object]:
    from worker.celery_app import generate_tryon

    def dispatch(job_id, person_b64, clothing_b64, api_key, created_at=None):
        # Messages older than the stale sweep are dropped rather than run.
        return generate_tryon.apply_async(
            (job_id, person_b64, clothing_b64, api_key),
            {"created_at": created_at},
            expires=settings.stale_job_seconds,
        )
    return dispatch


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


async def _read_images(request: Request) -> tuple[str | None, str | None, str | None]:
    """Return (person_b64, clothing_b64, api_key) from a multipart or JSON body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = GenerateRequest.model_validate(await request.json())
        except (ValueError, ValidationError):
            return None, None, None
        return body.person_image or None, body.clothing_image or None, body.api_key or None

    form = await request.form()
    images = []
    for field in ("personImage", "clothingImage"):
        item = form.get(field)
        data = await item.read() if isinstance(item, UploadFile) else None
        images.append(base64.b64encode(data).decode() if data else None)
    api_key = form.get("apiKey")
    return images[0], images[1], api_key if isinstance(api_key, str) and api_key else None


@router.post("/generate", response_model=JobResponse)
async def submit_job(request: Request, repo: Repo = Depends(get_repo),
                     dispatch=Depends(get_dispatcher)):
    person_b64, clothing_b64, api_key = await _read_images(request)
    if not person_b64 or not clothing_b64 or not api_key:
        return _error(400, "Missing required fields")

    job_id = str(uuid.uuid4())
    try:
        rec = await run_in_threadpool(repo.create_pending, job_id)
    except redis.RedisError:
        logger.exception("[%s] Could not write pending record", job_id)
        return _error(500, "Could not create job")

    logger.info("[%s] Dispatching generation: person=%s clothing=%s", job_id,
                format_bytes(len(person_b64)), format_bytes(len(clothing_b64)))
    try:
        await run_in_threadpool(dispatch, job_id, person_b64, clothing_b64, api_key,
                                created_at=rec.created_at)
    except Exception:
        logger.exception("[%s] Could not enqueue background job", job_id)
        try:
            await run_in_threadpool(repo.mark_failed, job_id, "Could not start background job",
                                    created_at=rec.created_at)
        except redis.RedisError:
            logger.exception("[%s] Could not record dispatch failure", job_id)
        return _error(500, "Could not start background job")

    return JobResponse(job_id=job_id)


@router.get("/status")
async def status_without_id(job_id: str | None = None, repo: Repo = Depends(get_repo)):
    if not job_id:
        return _error(400, "Job ID is required")
    return await job_status(job_id, repo)


@router.get("/status/{job_id}")
async def job_status(job_id: str, repo: Repo = Depends(get_repo)):
    try:
        rec = await run_in_threadpool(repo.get, job_id)
    except (redis.RedisError, ValueError):
        logger.exception("[%s] Error fetching status", job_id)
        return JSONResponse(status_code=500,
                            content={"status": "failed", "error": "Could not retrieve job status."})
    if rec is None:
        return {"status": "pending"}
    return rec.to_json()
