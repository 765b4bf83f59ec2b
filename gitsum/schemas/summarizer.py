"""Schemas for the GitHub summarizer endpoint."""
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from gitsum.services.github_service import is_github_url


class SummarizeRequest(BaseModel):
    githubUrl: str = Field(..., description="https://github.com/owner/repo or a blob/raw file URL")

    @field_validator("githubUrl")
    @classmethod
    def validate_github_url(cls, v: str) -> str:
        v = v.strip()
        if not is_github_url(v):
            raise ValueError("must look like https://github.com/owner/repo")
        return v


class SummarizeResponse(BaseModel):
    summary: Optional[str] = None
    cool_facts: Optional[List[str]] = None
