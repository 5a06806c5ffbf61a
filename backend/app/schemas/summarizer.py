"""Pydantic v2 schemas for the GitHub summarizer endpoint."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GitHubSummarizerRequest(BaseModel):
    """Payload accepted by POST /github-summarizer."""

    model_config = ConfigDict(extra="forbid")

    github_url: str = Field(
        ...,
        examples=["https://github.com/encode/httpx"],
        description="https://github.com/<owner>/<repo>",
    )


class GitHubSummaryOut(BaseModel):
    """Summary and facts extracted from a repository README."""

    summary: str = Field(..., min_length=1)
    cool_facts: list[str] = Field(..., min_length=1)
    files_analyzed: int = Field(..., ge=0)
    repo: str
    readme_length: int | None = Field(default=None, ge=0)
