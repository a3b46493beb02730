"""Redaction helpers that mask API keys and bearer tokens in logs and outputs."""
from __future__ import annotations

import re
from typing import Any

SECRET_PATTERNS = [
    re.compile(r"AIza[0-9A-Za-z_-]{30,}"),  # Google API keys
    re.compile(r"sk-[a-zA-Z0-9]{32,}", re.IGNORECASE),
    re.compile(r"Bearer\s+[a-zA-Z0-9._-]+", re.IGNORECASE),
]

# Dict keys whose values are always redacted
SECRET_KEY_PATTERN = re.compile(r"(api[-_]?key|token$|authorization)", re.IGNORECASE)


def mask_secrets(data: Any) -> Any:
    """
    Recursively redacts sensitive info from data.
    """
    if isinstance(data, dict):
        new_dict = {}
        for k, v in data.items():
            if isinstance(k, str) and SECRET_KEY_PATTERN.search(k):
                new_dict[k] = "[REDACTED]" if v else v
            else:
                new_dict[k] = mask_secrets(v)
        return new_dict
    elif isinstance(data, (list, tuple)):
        return [mask_secrets(i) for i in data]
    elif isinstance(data, str):
        masked = data
        for p in SECRET_PATTERNS:
            masked = p.sub("[REDACTED]", masked)
        return masked
    return data
