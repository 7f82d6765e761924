# preview_server/engine/module_graph.py
"""
Module graph - the engine's record of which workspace files have been compiled.

Nodes are keyed by the resolved absolute file path. A node with no
transform_result is stale and gets recompiled on the next request.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional


@dataclass
class ModuleNode:
    """One compiled workspace file."""
    id: str
    url: str
    file: Path
    transform_result: Optional[bytes] = None
    last_invalidation_timestamp: int = 0


class ModuleGraph:
    def __init__(self) -> None:
        self._by_id: Dict[str, ModuleNode] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    def get_module_by_id(self, module_id) -> Optional[ModuleNode]:
        return self._by_id.get(str(module_id))

    def ensure_entry(self, file: Path, url: str) -> ModuleNode:
        key = str(file)
        node = self._by_id.get(key)
        if node is None:
            node = ModuleNode(id=key, url=url, file=file)
            self._by_id[key] = node
        return node

    def invalidate_module(self, node: ModuleNode, timestamp: int = 0) -> None:
        node.transform_result = None
        if timestamp:
            node.last_invalidation_timestamp = timestamp

    def invalidate_all(self) -> None:
        for node in self._by_id.values():
            node.transform_result = None
