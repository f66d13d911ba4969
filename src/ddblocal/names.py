from __future__ import annotations

import secrets
import string
from collections.abc import Callable
from typing import Protocol

ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
NAME_LENGTH = 12


class NameGenerator(Protocol):
    """Produces (random) names for per-test tables."""

    def generate(self) -> str: ...


class RandomNameGenerator:
    """
    Stateless generator of fixed-length alphanumeric names.

    Each character is drawn uniformly from the alphabet using the `secrets`
    module, so instances are safe to share between threads. Errors from the
    operating system's randomness source propagate to the caller.
    """

    def __init__(self, length: int = NAME_LENGTH, alphabet: str = ALPHABET) -> None:
        if length < 1:
            raise ValueError("length must be positive")
        if not alphabet:
            raise ValueError("alphabet must not be empty")
        self.length = length
        self.alphabet = alphabet

    def generate(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))


class NameGeneratorFunc:
    """Adapts a plain zero-argument callable to the NameGenerator protocol."""

    def __init__(self, func: Callable[[], str]) -> None:
        self._func = func

    def generate(self) -> str:
        return self._func()


__all__ = ["ALPHABET", "NAME_LENGTH", "NameGenerator", "NameGeneratorFunc", "RandomNameGenerator"]
