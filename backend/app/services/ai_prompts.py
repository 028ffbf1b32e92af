import json
from typing import Any


WHY_MAX_CHARS = 160


def why_recommended_system_prompt() -> str:
    return (
        f'Return STRICT JSON only: {{"why": "short <= {WHY_MAX_CHARS} chars"}}. '
        "No markdown, no extra text. Tunisian tourism and hospitality context. "
        "Explain in one sentence why this match fits, using only the data given."
    )


def why_recommended_user_prompt(*, context: dict[str, Any]) -> str:
    # Only the scored fields are sent.
    return json.dumps(context, ensure_ascii=False, separators=(",", ":"))
