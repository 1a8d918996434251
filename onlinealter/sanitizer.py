"""Credential redaction applied to every line before it is logged."""

from __future__ import annotations

from typing import Iterable

MASK = "[FILTERED]"
_FALLBACK_MASK_CHARS = "*#~%^"


def sanitize(text: str, secret: str | None) -> str:
    """Replace every occurrence of ``secret`` in ``text`` with a mask.

    An empty or missing secret leaves the text untouched. The mask never
    shares a character with the secret, so the output cannot contain the
    secret and sanitizing twice equals sanitizing once.
    """

    if not secret or not text:
        return text
    return text.replace(secret, _mask_for(secret))


class LogSanitizer:
    """Redacts a fixed set of secrets from arbitrary text."""

    def __init__(self, secrets: Iterable[str | None] = ()) -> None:
        # Longest first so a secret that contains another is masked whole.
        unique = {secret for secret in secrets if secret}
        self._secrets = tuple(sorted(unique, key=lambda item: (-len(item), item)))

    @property
    def secrets(self) -> tuple[str, ...]:
        return self._secrets

    def sanitize(self, text: str) -> str:
        for secret in self._secrets:
            text = sanitize(text, secret)
        return text

    __call__ = sanitize


def _mask_for(secret: str) -> str:
    if not set(secret) & set(MASK):
        return MASK
    for char in _FALLBACK_MASK_CHARS:
        if char not in secret:
            return char * 8
    used = set(secret)
    code = 0x2588
    while chr(code) in used:
        code += 1
    return chr(code) * 8


__all__ = ["LogSanitizer", "MASK", "sanitize"]
