"""
Mock completion responses for offline runs (MOCK_MODE=true).

Deterministic answers keyed off the prompt text, so a full pipeline pass
can run without an OpenAI key. Designed to work with pydantic-ai's
FunctionModel.
"""

import json
import logging
import re
from typing import Any, List, Tuple

from pydantic_ai.messages import ModelResponse, TextPart

logger = logging.getLogger(__name__)

_ROSTER_LINE = re.compile(r'^([a-z0-9][a-z0-9_-]*): (.+)$')


def get_mock_response(prompt: str, system_prompt: str = "") -> str:
    """Return a deterministic mock completion for a pipeline prompt."""
    system_lower = system_prompt.lower()

    if "classify" in system_lower:
        return json.dumps({"slug": _mock_classify(prompt)})
    if "extract" in system_lower:
        return json.dumps(_mock_extraction(prompt))
    if "briefing" in system_lower:
        return json.dumps(_mock_briefing(prompt))

    return "Mock completion for offline mode."


def get_mock_response_for_function_model(messages: list[Any], info: Any) -> ModelResponse:
    """Adapter for pydantic-ai FunctionModel.

    Pulls the user and system prompt text out of the message history and
    delegates to get_mock_response().
    """
    prompt = ""
    system_prompt = ""
    for msg in messages:
        for part in getattr(msg, 'parts', []):
            content = getattr(part, 'content', None)
            if not isinstance(content, str):
                continue
            part_type = type(part).__name__
            if "User" in part_type:
                prompt = content
            elif "System" in part_type:
                system_prompt = content

    # Agent instructions arrive on the model request, not as a message part
    instructions = getattr(info, 'instructions', None)
    if instructions and not system_prompt:
        system_prompt = instructions

    return ModelResponse(parts=[TextPart(content=get_mock_response(prompt, system_prompt))])


# ── Per-prompt mocks ────────────────────────────────────────────────

def _split_roster(prompt: str) -> Tuple[List[Tuple[str, str]], str]:
    roster: List[Tuple[str, str]] = []
    head, _, article = prompt.partition("Article:")
    for line in head.splitlines():
        m = _ROSTER_LINE.match(line.strip())
        if m:
            roster.append((m.group(1), m.group(2).strip()))
    return roster, article


def _mock_classify(prompt: str):
    """First roster account whose name or slug appears in the article."""
    roster, article = _split_roster(prompt)
    article_lower = article.lower()
    for slug, name in roster:
        if name.lower() in article_lower or slug in article_lower:
            return slug
    return None


def _mock_extraction(prompt: str) -> dict:
    text = prompt.partition("Document:")[2].strip()
    first_line = next((ln.strip() for ln in text.splitlines() if ln.strip()), "")
    if not first_line:
        return {"entities": [], "signals": []}
    return {
        "entities": [],
        "signals": [{
            "severity": "low",
            "category": "strategy",
            "summary": first_line[:200],
        }],
    }


def _mock_briefing(prompt: str) -> dict:
    bullets = [
        ln.strip().lstrip("-").strip()
        for ln in prompt.splitlines()
        if ln.strip().startswith("- ")
    ][:5]
    return {
        "bullets": bullets or ["No notable changes."],
        "narrative": f"{len(bullets)} recent item(s) reviewed.",
    }
