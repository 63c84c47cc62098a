"""Tolerant JSON extraction from AI prose.

AI collaborators answer with an explanation wrapped around a loosely
structured payload ("Here are the scores: [...] Let me know..."). We scan
for the first position where a complete, syntactically valid JSON object
or array decodes, skipping over anything that only looks like one.

extract_json("noise [1, 2] more")          -> [1, 2]
extract_json("{bad} then {\"a\": 1}")      -> {"a": 1}
extract_json("no payload here")            -> None
"""

import json
import logging

log = logging.getLogger("scout.json")

_DECODER = json.JSONDecoder()
_OPENERS = {"{": dict, "[": list}


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if "```" not in cleaned:
        return cleaned
    lines = [line for line in cleaned.split("\n") if not line.strip().startswith("```")]
    return "\n".join(lines).strip()


def extract_json(text: str | None, expect: type | None = None) -> dict | list | None:
    """Return the first valid JSON object/array in text, or None.

    expect: dict or list to only accept that kind of value.
    """
    if not text:
        return None

    cleaned = _strip_fences(text)
    wanted = {expect} if expect in (dict, list) else {dict, list}

    pos = 0
    while pos < len(cleaned):
        starts = [
            i for i in (cleaned.find(ch, pos) for ch, kind in _OPENERS.items() if kind in wanted)
            if i != -1
        ]
        if not starts:
            break
        start = min(starts)
        try:
            value, _end = _DECODER.raw_decode(cleaned, start)
        except json.JSONDecodeError:
            pos = start + 1
            continue
        if isinstance(value, tuple(wanted)):
            return value
        pos = start + 1

    log.debug("No JSON payload found in: %s...", text[:100])
    return None
