"""
Upsert strategy - merge documents into the output by key.

Matching documents are updated field by field; unmatched documents are
inserted.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from typing import Any

from tmql_orchestration.core.materialization import MaterializationConfig
from tmql_orchestration.strategies.base import Document, Strategy, document_key


class UpsertStrategy(Strategy):
    """Upsert strategy - insert-or-update by key using ``$merge``."""

    def write_stage(self, output: str, config: MaterializationConfig) -> dict[str, Any]:
        key = config.effective_key
        return {
            "$merge": {
                "into": output,
                "on": key[0] if len(key) == 1 else list(key),
                "whenMatched": "merge",
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
        result = [copy.deepcopy(doc) for doc in existing]
        index: dict[tuple[Any, ...], int] = {}
        for position, doc in enumerate(result):
            index.setdefault(document_key(doc, key, output), position)

        for doc in incoming:
            doc_key = document_key(doc, key, output)
            position = index.get(doc_key)
            if position is None:
                index[doc_key] = len(result)
                result.append(copy.deepcopy(doc))
            else:
                result[position].update(copy.deepcopy(doc))
        return result
