# ============================================================================
# SceneVault -- Identifier Generator (scenevault/core/asset_ids.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Hands out the ids used for imported assets and for import batches
#   (transactions).
#
#   Real runs use random UUID4 strings: two imports of the same file
#   are two different assets, so unlike chunk ids these must NOT be
#   derived from the file content.
#
#   Tests inject SequentialIdFactory instead, which returns "id-1",
#   "id-2", ... so expected results can be written down ahead of time.
#
# HOW TO USE:
#   engine = IngestEngine(id_factory=SequentialIdFactory())
# ============================================================================

from __future__ import annotations

import itertools
import uuid
from typing import Callable

IdFactory = Callable[[], str]


def new_id() -> str:
    """Random, collision-free id (UUID4 as a 36-char string)."""
    return str(uuid.uuid4())


class SequentialIdFactory:
    """Deterministic id source: prefix-1, prefix-2, ..."""

    def __init__(self, prefix: str = "id", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"
