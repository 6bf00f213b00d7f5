"""Path segment sanitization and source fingerprints."""

import hashlib
import re
from pathlib import Path

from loguru import logger

log = logger.bind(stage="sanitize")

UNKNOWN = "UNKNOWN"

_SEPARATORS = re.compile(r"[/\\]+|\s+")
_FORBIDDEN = re.compile(r"""[,:;)\]\[('"@$^*<>?!=]""")
_AMPERSAND = re.compile(r"_?&_?")
_FIRST_LETTER = re.compile(r"^(\.*)(\w)")
_UNDERSCORES = re.compile(r"__+")


def _capitalize(word: str) -> str:
    """Upper-case the first letter of word, leaving the rest untouched.

    The 'and' connective produced from '&' stays lower case.
    """
    if word == "and":
        return word
    return _FIRST_LETTER.sub(lambda m: m.group(1) + m.group(2).upper(), word, count=1)


def _truncate(value: str, max_bytes: int) -> str:
    encoded = value.encode("utf-8")
    if len(encoded) <= max_bytes:
        return value
    truncated = encoded[:max_bytes].decode("utf-8", errors="ignore")
    log.debug(f"Truncated segment from {len(encoded)} to {max_bytes} bytes: '{truncated}'")
    return truncated


def sanitize(raw: str | None, max_bytes: int = 255) -> str:
    """Clean a single path segment (album artist, album, or file name).

    Strips leading/trailing dots (a trailing dot breaks Windows), turns
    separators and whitespace into underscores, drops shell/filesystem-hostile
    punctuation, spells out '&', capitalizes each word and hyphenated
    sub-word, and collapses repeated underscores. Returns 'UNKNOWN' when
    nothing is left. Idempotent.
    """
    cleaned = (raw or "").strip(".")
    cleaned = _SEPARATORS.sub("_", cleaned)
    cleaned = _FORBIDDEN.sub("", cleaned)
    cleaned = _AMPERSAND.sub("_and_", cleaned)
    cleaned = "_".join(
        "-".join(_capitalize(part) for part in word.split("-"))
        for word in cleaned.split("_")
    )
    cleaned = _UNDERSCORES.sub("_", cleaned)
    cleaned = _truncate(cleaned, max_bytes)
    # Character stripping can expose new leading/trailing dots
    cleaned = cleaned.strip(".")

    result = cleaned or UNKNOWN
    log.debug(f"sanitize('{raw}') => '{result}'")
    return result


def source_fingerprint(source_path: Path | str) -> str:
    """Generate a 16-char hex dedup key from the source path string.

    Only the path spelling is hashed, never the file bytes: two identical
    files at different paths get different fingerprints.
    """
    return hashlib.sha256(str(source_path).encode()).hexdigest()[:16]
