from pydantic import BaseModel
import os

class Settings(BaseModel):
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    segmind_url: str = os.getenv("SEGMIND_URL", "https://api.segmind.com/v1/segfit-v1.2")
    upstream_timeout_seconds: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", 60))
    job_ttl_seconds: int = int(os.getenv("JOB_TTL_SECONDS", 86400))
    stale_job_seconds: int = int(os.getenv("STALE_JOB_SECONDS", 900))
    poll_interval_seconds: float = float(os.getenv("POLL_INTERVAL_SECONDS", 3))
    poll_timeout_seconds: float = float(os.getenv("POLL_TIMEOUT_SECONDS", 180))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
