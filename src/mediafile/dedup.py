"""Claim registry deciding which transfer of a source or destination actually runs."""

from __future__ import annotations

import threading
from collections import defaultdict

from loguru import logger

from .models import Claim

log = logger.bind(stage="dedup")


class DedupRegistry:
    """Maps a key to every claim made against it.

    Keys are source fingerprints or destination paths. The first claim for a
    key wins and should be transferred; later claims are kept for the
    end-of-batch duplicate report only. The check-and-record runs under a
    lock, which may be shared with the caller (it is re-entrant, so a caller
    already holding it can claim).
    """

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._lock = lock if lock is not None else threading.RLock()
        self._claims: defaultdict[str, list[Claim]] = defaultdict(list)

    def claim(self, key: str, claim: Claim) -> bool:
        """Record claim; return True only if it is the first for the key."""
        with self._lock:
            self._claims[key].append(claim)
            first = len(self._claims[key]) == 1
        if not first:
            log.debug(f"Duplicate claim for {key}: {claim}")
        return first

    def claims(self, key: str) -> list[Claim]:
        with self._lock:
            return list(self._claims.get(key, []))

    def duplicates(self) -> dict[str, list[Claim]]:
        """Keys claimed more than once. Diagnostic, not an error."""
        with self._lock:
            return {key: list(c) for key, c in self._claims.items() if len(c) > 1}
