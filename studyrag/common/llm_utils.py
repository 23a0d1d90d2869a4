"""Shared utilities for post-processing LLM responses."""

from __future__ import annotations

import re

CLARIFY_RESPONSE = (
    "I understand your question. Could you provide a bit more detail "
    "so I can give you a more helpful answer?"
)


def clean_llm_response(raw: str, assistant_name: str = "", min_length: int = 20) -> str:
    """Tidy a generated answer before it reaches the user.

    In order:
    1. Trim surrounding whitespace
    2. Strip a leading role prefix ("Assistant:", "AI:", "<assistant_name>:")
    3. Drop repeated non-blank lines, keeping the first occurrence
    4. Replace answers shorter than `min_length` with a clarifying request
    """
    text = (raw or "").strip()

    names = ["Assistant", "AI"]
    if assistant_name:
        names.append(re.escape(assistant_name))
    text = re.sub(rf"^(?:{'|'.join(names)})\s*:\s*", "", text, flags=re.IGNORECASE)

    seen = set()
    lines = []
    for line in text.split("\n"):
        key = line.strip()
        if key:
            if key in seen:
                continue
            seen.add(key)
        lines.append(line)
    text = "\n".join(lines).strip()

    if len(text) < min_length:
        return CLARIFY_RESPONSE

    return text
