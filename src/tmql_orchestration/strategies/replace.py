"""
Replace strategy - overwrite the output collection with new documents.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from typing import Any

from tmql_orchestration.core.materialization import MaterializationConfig
from tmql_orchestration.strategies.base import Document, Strategy


class ReplaceStrategy(Strategy):
    """Replace strategy - full overwrite using ``$out``."""

    def write_stage(self, output: str, config: MaterializationConfig) -> dict[str, Any]:
        return {"$out": output}

    def apply(
        self,
        existing: Sequence[Document],
        incoming: Sequence[Document],
        config: MaterializationConfig,
        output: str,
    ) -> list[Document]:
        return [copy.deepcopy(doc) for doc in incoming]
