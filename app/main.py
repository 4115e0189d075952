import logging

from fastapi import FastAPI
from .config import settings
from .routers import jobs

logging.basicConfig(level=settings.log_level)

app = FastAPI(title="Virtual Try-On Jobs API", version="1.0.0")
app.include_router(jobs.router)

@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
