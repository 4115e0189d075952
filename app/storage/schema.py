from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional

JobStatus = Literal["pending", "completed", "failed"]

class JobRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    status: JobStatus = "pending"
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    error: Optional[str] = None
    message: Optional[str] = None  # raw upstream error body
    created_at: Optional[float] = Field(default=None, alias="createdAt")

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
