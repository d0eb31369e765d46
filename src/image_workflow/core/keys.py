"""Storage key derivation for uploads and processed outputs."""

import re
import secrets
from typing import Optional

from .clock import SystemClock, epoch_millis
from .protocols import ClockProtocol, RandomSourceProtocol

UPLOADS_PREFIX = "uploads/"
PROCESSED_PREFIX = "processed/"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_EXTENSION = re.compile(r"\.[^./]+$")
_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


class SecretsRandomSource:
    """Random key tokens drawn from the ``secrets`` module."""

    def __init__(self, bits: int = 64):
        self._bits = bits

    def token(self) -> str:
        return to_base36(secrets.randbits(self._bits))


def sanitize_filename(filename: str) -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


class KeyGenerator:
    """
    Issues unique storage keys of the form
    ``<prefix>/<unix-ms>-<base36 token>-<sanitized filename>``.

    Uniqueness rests on the timestamp plus random token; collisions are not
    checked for. An empty filename yields a key with an empty tail.
    """

    def __init__(
        self,
        clock: Optional[ClockProtocol] = None,
        random_source: Optional[RandomSourceProtocol] = None,
    ):
        self._clock = clock or SystemClock()
        self._random_source = random_source or SecretsRandomSource()

    def generate_key(self, filename: str, prefix: str = "uploads") -> str:
        timestamp = epoch_millis(self._clock.now())
        token = self._random_source.token()
        return f"{prefix}/{timestamp}-{token}-{sanitize_filename(filename)}"


def replace_extension(key: str, suffix: str) -> str:
    """Swap the key's extension for ``suffix``; append it when there is none."""
    if _EXTENSION.search(key):
        return _EXTENSION.sub(suffix, key)
    return key + suffix


def resized_output_key(source_key: str, width: int, height: int) -> str:
    """
    ``uploads/a-photo.jpg`` -> ``processed/a-photo-resized-1920x1080.jpg``.
    """
    key = source_key.replace(UPLOADS_PREFIX, PROCESSED_PREFIX, 1)
    return replace_extension(key, f"-resized-{width}x{height}.jpg")


def exposure_output_key(source_key: str) -> str:
    """Keys already under ``processed/`` keep their location."""
    key = source_key
    if not key.startswith(PROCESSED_PREFIX):
        key = key.replace(UPLOADS_PREFIX, PROCESSED_PREFIX, 1)
    return replace_extension(key, "-exposure-adjusted.jpg")
