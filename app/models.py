from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class GenerateRequest(BaseModel):
    """JSON variant of the submission body; images are base64 strings."""
    model_config = ConfigDict(populate_by_name=True)

    person_image: Optional[str] = Field(default=None, alias="personImage")
    clothing_image: Optional[str] = Field(default=None, alias="clothingImage")
    api_key: Optional[str] = Field(default=None, alias="apiKey")

class JobResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")

class ErrorResponse(BaseModel):
    error: str
