"""Secret masking for command output and log messages."""

from __future__ import annotations

from typing import Iterable, Iterator

MASK = "***"


class SecretSet:
    """Append-only collection of plaintext secrets for one pipeline run.

    Secrets are registered whenever a credential is embedded somewhere that
    may end up in command output (for example a remote URL). Nothing is ever
    removed from the set.
    """

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        self._secrets: list[str] = []
        for secret in secrets:
            self.add(secret)

    def add(self, secret: str | None) -> None:
        if not secret or secret in self._secrets:
            return
        self._secrets.append(secret)

    def __contains__(self, secret: object) -> bool:
        return secret in self._secrets

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._secrets))

    def __len__(self) -> int:
        return len(self._secrets)

    def redact(self, text: str) -> str:
        return redact(text, self)


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every occurrence of each secret in ``text`` with ``MASK``.

    Longer secrets are masked first so a secret that contains another one is
    still masked as a whole.
    """
    if not text:
        return text
    for secret in sorted({s for s in secrets if s}, key=len, reverse=True):
        text = text.replace(secret, MASK)
    return text


__all__ = ["MASK", "SecretSet", "redact"]
