"""Logging filters that scrub sensitive content."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"((?:sk|rk)_(?:live|test)_[0-9A-Za-z]+|whsec_[0-9A-Za-z]+|([?&]key=)[\w-]+)",
)


def _redact(match: re.Match[str]) -> str:
    query_prefix = match.group(2)
    if query_prefix:
        return f"{query_prefix}**REDACTED**"
    return "**REDACTED**"


class SensitiveFilter(logging.Filter):
    """Replace Stripe secrets and Maps API keys in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _SENSITIVE_PATTERN.sub(_redact, record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: _scrub(value) for key, value in record.args.items()
                }
            else:
                record.args = tuple(_scrub(value) for value in record.args)
        return True


def _scrub(value: object) -> object:
    if isinstance(value, str):
        return _SENSITIVE_PATTERN.sub(_redact, value)
    return value


__all__ = ["SensitiveFilter"]
