from __future__ import annotations

import json
import re
from typing import Any


_TAG_RE = re.compile(r"<[^>]+>")


def localized_text(raw: Any, language: str, *, fallback: str = "") -> str:
    """Pick one language out of an SDE name/description column.

    The column may hold a dict, a JSON string of a dict, or plain text. A
    missing language falls back to the first translation present.
    """

    if raw is None:
        return fallback

    data: Any = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = raw

    if isinstance(data, dict):
        text = data.get(language) or next(iter(data.values()), "")
    else:
        text = str(data)

    clean = _TAG_RE.sub("", str(text or "")).strip()
    return clean or fallback
