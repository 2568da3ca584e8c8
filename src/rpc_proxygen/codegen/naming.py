"""Case conversion for service, event and client method names."""

from __future__ import annotations

import re

__all__ = [
    "EMIT_PREFIX",
    "STREAM_SUFFIX",
    "event_method_name",
    "kebab_case",
    "pascal_case",
    "snake_case",
    "split_words",
]

EMIT_PREFIX = "emit"
STREAM_SUFFIX = "_stream"

_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def split_words(value: str) -> list[str]:
    return _WORD_PATTERN.findall(value)


def pascal_case(value: str) -> str:
    return "".join(word[:1].upper() + word[1:].lower() for word in split_words(value))


def snake_case(value: str) -> str:
    return "_".join(word.lower() for word in split_words(value))


def kebab_case(value: str) -> str:
    return "-".join(word.lower() for word in split_words(value))


def event_method_name(event_name: str) -> str:
    """``password-reset`` -> ``emit_password_reset``."""
    return f"{EMIT_PREFIX}_{snake_case(event_name)}"
