"""
README summarization for the GitHub summarizer endpoint.

The LLM narrates the README when GROQ_API_KEY is configured. Without a
key a plain fallback is used: the first prose paragraph becomes the
summary. No section-by-section README parsing is attempted.
"""

from __future__ import annotations

import logging

import httpx

from app.core.config import settings
from app.schemas.summarizer import GitHubSummaryOut
from app.services.github_client import fetch_readme
from app.services.llm_client import generate_repo_summary

logger = logging.getLogger(__name__)

_FALLBACK_SUMMARY_CHARS = 500
NO_README_SUMMARY = "No README.md file found in this repository."


def _first_paragraph(readme: str) -> str | None:
    """First block of text that is not a heading, badge, fence, or table."""
    for block in readme.split("\n\n"):
        lines = [
            line.strip()
            for line in block.splitlines()
            if line.strip()
            and not line.lstrip().startswith(("#", "```", "|", "[!", "![", "<"))
        ]
        if lines:
            return " ".join(lines)[:_FALLBACK_SUMMARY_CHARS]
    return None


def fallback_summary(readme: str) -> dict[str, object]:
    """LLM-free summary used when no LLM key is configured."""
    return {
        "summary": _first_paragraph(readme) or "A repository README without a plain-text description.",
        "cool_facts": [f"The README is {len(readme)} characters long."],
    }


async def summarize_readme(readme: str, repo: str) -> dict[str, object]:
    """
    Summary and facts for one README: the LLM when configured, else the fallback.

    Raises:
        RuntimeError: LLM failure.
    """
    if not settings.GROQ_API_KEY:
        logger.debug("GROQ_API_KEY not set, using fallback summary for %s", repo)
        return fallback_summary(readme)

    result = await generate_repo_summary(readme, repo)
    if not result["cool_facts"]:
        result["cool_facts"] = fallback_summary(readme)["cool_facts"]
    return result


async def summarize_repository(
    github_url: str,
    owner: str,
    repo: str,
    client: httpx.AsyncClient | None = None,
) -> GitHubSummaryOut:
    """
    Fetch the README of owner/repo and summarize it.

    Raises:
        GitHubError:  Upstream GitHub failure.
        RuntimeError: LLM failure.
    """
    readme = await fetch_readme(owner, repo, client=client)

    if readme is None or not readme.strip():
        return GitHubSummaryOut(
            summary=NO_README_SUMMARY,
            cool_facts=["This repository does not contain a README file."],
            files_analyzed=0,
            repo=github_url,
        )

    result = await summarize_readme(readme, f"{owner}/{repo}")

    return GitHubSummaryOut(
        summary=result["summary"],
        cool_facts=result["cool_facts"],
        files_analyzed=1,
        repo=github_url,
        readme_length=len(readme),
    )
