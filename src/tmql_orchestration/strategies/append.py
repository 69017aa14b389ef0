"""
Append strategy - insert-only writes.

A document whose key already exists in the output (or appears twice in the
same write) is a conflict. Conflicts fail the whole write; nothing is skipped
silently and nothing is partially written.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from typing import Any

from tmql_orchestration.core.materialization import MaterializationConfig
from tmql_orchestration.exceptions import WriteConflictError
from tmql_orchestration.strategies.base import Document, Strategy, document_key


class AppendStrategy(Strategy):
    """Append strategy - inserts new documents using ``$merge`` with ``whenMatched: fail``."""

    def write_stage(self, output: str, config: MaterializationConfig) -> dict[str, Any]:
        key = config.effective_key
        return {
            "$merge": {
                "into": output,
                "on": key[0] if len(key) == 1 else list(key),
                "whenMatched": "fail",
                "whenNotMatched": "insert",
            }
        }

    def apply(
        self,
        existing: Sequence[Document],
        incoming: Sequence[Document],
        config: MaterializationConfig,
        output: str,
    ) -> list[Document]:
        key = config.effective_key
        taken = {document_key(doc, key, output) for doc in existing}
        conflicts = []
        for doc in incoming:
            doc_key = document_key(doc, key, output)
            if doc_key in taken:
                conflicts.append(doc_key[0] if len(doc_key) == 1 else doc_key)
            taken.add(doc_key)

        if conflicts:
            raise WriteConflictError(output, conflicts)
        return [copy.deepcopy(doc) for doc in existing] + [copy.deepcopy(doc) for doc in incoming]
