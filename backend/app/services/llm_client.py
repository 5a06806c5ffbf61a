"""
Groq LLM client for summarizing repository READMEs.

Uses Groq's OpenAI-compatible /chat/completions API via httpx.

Configuration:
  GROQ_API_KEY: server-side only (never exposed to clients)
  LLM_MODEL   : defaults to llama-3.1-8b-instant (fast, cheap)

Safety:
  • Low temperature (0.2) for consistent output
  • Bounded max_tokens (512) and bounded README input
  • System prompt restricts the model to facts stated in the README
  • Structured JSON output requested
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

_GROQ_BASE_URL = "https://api.groq.com/openai/v1"
_MAX_README_CHARS = 12_000

# ── System prompt ───────────────────────────────────────────
SYSTEM_PROMPT = """\
You summarize software repositories for engineers from their README.
Be precise, factual, and concise. No marketing language.

RULES:
1. Use ONLY information stated in the README text provided.
2. Do NOT invent features, numbers, or technologies.
3. Ignore badges, installation commands, and license boilerplate.

OUTPUT FORMAT (valid JSON only):
{
  "summary": "2-3 sentences on what the project is and what it is for.",
  "cool_facts": [
    "3 to 5 short, distinct, interesting facts taken from the README."
  ]
}

Respond ONLY with the JSON object, no markdown fences or extra text.\
"""


async def generate_repo_summary(
    readme: str,
    repo: str,
) -> dict[str, Any]:
    """
    Ask the LLM for a summary and cool facts about a README.

    Args:
        readme: Raw README text (truncated before sending).
        repo:   owner/repo label, for context only.

    Returns:
        Dict with keys: summary, cool_facts.

    Raises:
        RuntimeError: If the LLM call fails or returns unparseable output.
    """
    if not settings.GROQ_API_KEY:
        raise RuntimeError("GROQ_API_KEY is not configured")

    user_message = (
        f"Repository: {repo}\n\nREADME:\n\n" + readme[:_MAX_README_CHARS]
    )

    payload = {
        "model": settings.LLM_MODEL,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_message},
        ],
        "temperature": 0.2,
        "max_tokens": 512,
    }

    headers = {
        "Authorization": f"Bearer {settings.GROQ_API_KEY}",
        "Content-Type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{_GROQ_BASE_URL}/chat/completions",
                json=payload,
                headers=headers,
            )
    except httpx.HTTPError as exc:
        logger.error("Groq API unreachable: %s", exc)
        raise RuntimeError("LLM service is unreachable") from exc

    if response.status_code != 200:
        logger.error(
            "Groq API error: status=%d body=%s",
            response.status_code,
            response.text[:500],
        )
        raise RuntimeError("LLM service returned an error")

    # ── Parse the LLM's JSON response ───────────────────────
    try:
        data = response.json()
        content = data["choices"][0]["message"]["content"]

        # Strip markdown fences if the model wraps output
        content = content.strip()
        if content.startswith("```"):
            content = content.split("\n", 1)[1]  # drop first line
            if content.endswith("```"):
                content = content[:-3]
            content = content.strip()

        parsed = json.loads(content)
        if not isinstance(parsed, dict):
            raise ValueError("LLM output is not a JSON object")
    except (KeyError, IndexError, ValueError) as exc:
        logger.error("Failed to parse LLM response: %s", exc)
        raise RuntimeError("Could not parse LLM summary") from exc

    # ── Validate structure ──────────────────────────────────
    facts = [str(fact).strip() for fact in parsed.get("cool_facts", []) if str(fact).strip()]
    return {
        "summary": str(parsed.get("summary") or "").strip() or "No summary available.",
        "cool_facts": facts[:5],
    }
