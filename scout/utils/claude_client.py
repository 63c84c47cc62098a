"""Claude API client — free-form text calls for scoring and ranking.

Two model tiers:
  - FAST: high-volume batch scoring
  - SMART: ranking, where reasoning quality matters

Usage:
    from scout.utils.claude_client import claude_text, safe_json_parse
    text = await claude_text(prompt, model_tier="fast")
    scores = safe_json_parse(text)

Every call returns None on failure (missing key, non-200, transport error);
the caller decides whether that is fatal. A 429 is the exception: it raises
Throttled so batch callers can treat it as a soft failure.
"""

import logging
from typing import Any

import httpx

from ..config import settings
from ..exceptions import Throttled
from .json_extract import extract_json

log = logging.getLogger("scout.claude")

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"

MODELS = {
    "fast": "claude-haiku-4-5-20251001",
    "smart": "claude-sonnet-4-5-20250929",
}


def _headers() -> dict:
    return {
        "x-api-key": settings.anthropic_api_key,
        "anthropic-version": API_VERSION,
        "content-type": "application/json",
    }


async def claude_text(
    prompt: str,
    *,
    system: str = "",
    model_tier: str = "smart",
    max_tokens: int = 2048,
    timeout: int = 60,
) -> str | None:
    """Call Claude for a free-form text response.

    Args:
        prompt: User message
        system: System prompt
        model_tier: "fast" or "smart"
        max_tokens: Max output tokens
        timeout: Request timeout seconds

    Returns:
        Text response or None on failure

    Raises:
        Throttled: the API answered 429
    """
    if not settings.anthropic_api_key:
        log.warning("Claude call skipped: ANTHROPIC_API_KEY not configured")
        return None

    body: dict[str, Any] = {
        "model": MODELS.get(model_tier, MODELS["fast"]),
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    if system:
        body["system"] = system

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(API_URL, headers=_headers(), json=body)

            if resp.status_code == 429:
                log.info("Claude API throttled (429)")
                raise Throttled("Claude API rate limited", status_code=429)
            if resp.status_code != 200:
                log.warning(f"Claude API {resp.status_code}: {resp.text[:200]}")
                return None

            data = resp.json()
            texts = [
                b["text"] for b in data.get("content", []) if b.get("type") == "text"
            ]
            return "\n".join(texts) if texts else None

    except (httpx.HTTPError, ValueError) as e:
        log.warning(f"Claude text call failed: {e}")
        return None


def safe_json_parse(text: str | None, expect: type | None = None) -> dict | list | None:
    """Parse JSON from text that may contain markdown fences or preamble."""
    return extract_json(text, expect)
