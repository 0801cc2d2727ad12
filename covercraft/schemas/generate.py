"""
Pydantic schemas for the generation endpoint.
"""
from typing import Optional
from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """Request body for cover letter generation."""
    jobDescription: Optional[str] = Field(None, description="Job description text")
    resume: Optional[str] = Field(None, description="Resume text or summary")
    tone: Optional[str] = Field(None, description="Desired tone of the letter")

    model_config = {
        "json_schema_extra": {
            "example": {
                "jobDescription": "Senior Backend Engineer at Acme...",
                "resume": "Jane Doe - 8 years building Python services...",
                "tone": "confident and natural",
            }
        }
    }


class GenerateResponse(BaseModel):
    """Successful generation response."""
    text: str
    full_access: bool = True
    locked: bool = False
    generations_used: int
    free_limit: int
    free_remaining: Optional[int] = Field(None, description="Null for subscribers")
