"""
Top-level key redaction for log metadata

Only the first level of the mapping is inspected. Sensitive values nested
deeper are not masked, so keep them at the top level of the data passed
to the logger when redaction matters.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Pattern, Union

REDACTED = "[REDACTED]"

RedactRule = Union[str, Pattern[str]]


class Redactor:
    """Masks values whose key equals a string rule or matches a pattern rule"""

    def __init__(self, rules: Iterable[RedactRule] = ()):
        self.keys = set()
        self.patterns: List[Pattern[str]] = []
        for rule in rules:
            if isinstance(rule, str):
                self.keys.add(rule)
            elif isinstance(rule, re.Pattern):
                self.patterns.append(rule)
            else:
                raise TypeError(f"Redaction rule must be a str or compiled pattern, got {type(rule).__name__}")

    def __bool__(self) -> bool:
        return bool(self.keys or self.patterns)

    def matches(self, key: Any) -> bool:
        if key in self.keys:
            return True
        text = str(key)
        return any(pattern.search(text) for pattern in self.patterns)

    def redact(self, meta: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of `meta` with matching values replaced by the sentinel"""
        return {key: REDACTED if self.matches(key) else value for key, value in meta.items()}

    __call__ = redact


def redact(meta: Mapping[str, Any], rules: Iterable[RedactRule]) -> Dict[str, Any]:
    return Redactor(rules).redact(meta)
