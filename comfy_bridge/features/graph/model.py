"""
In-memory representation of a ComfyUI prompt graph (API format).

The graph is a mapping of node id -> {"class_type": ..., "inputs": {...}}.
Input values are opaque JSON; only the keys node configs write to are
ever inspected.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Iterator

from ...shared import ErrorCode, Result


@dataclass
class GraphNode:
    class_type: str
    inputs: dict[str, Any] = field(default_factory=dict)
    # Extra top-level keys (e.g. "_meta") carried through untouched.
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "GraphNode":
        inputs = payload.get("inputs")
        extra = {k: copy.deepcopy(v) for k, v in payload.items() if k not in ("class_type", "inputs")}
        return cls(
            class_type=str(payload.get("class_type") or ""),
            inputs=copy.deepcopy(inputs) if isinstance(inputs, dict) else {},
            extra=extra,
        )

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = copy.deepcopy(self.extra)
        out["inputs"] = copy.deepcopy(self.inputs)
        out["class_type"] = self.class_type
        return out

    def has_input(self, key: str) -> bool:
        return key in self.inputs

    def first_present(self, *keys: str) -> str | None:
        """First key of `keys` present on the node inputs, in priority order."""
        for key in keys:
            if key in self.inputs:
                return key
        return None


class GraphModel:
    """Node id -> GraphNode mapping, mutated in place by node configs."""

    def __init__(self, nodes: dict[str, GraphNode] | None = None, source: str | None = None):
        self._nodes: dict[str, GraphNode] = dict(nodes or {})
        self.source = source

    def __contains__(self, node_id: object) -> bool:
        return str(node_id) in self._nodes

    def __getitem__(self, node_id: str) -> GraphNode:
        return self._nodes[str(node_id)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphModel):
            return NotImplemented
        return self.to_payload() == other.to_payload()

    def __repr__(self) -> str:
        return f"GraphModel(nodes={len(self._nodes)}, source={self.source!r})"

    def get(self, node_id: str) -> GraphNode | None:
        return self._nodes.get(str(node_id))

    def items(self):
        return self._nodes.items()

    def node_ids(self) -> list[str]:
        return list(self._nodes)

    @classmethod
    def from_payload(cls, payload: Any, source: str | None = None) -> Result["GraphModel"]:
        """
        Build a graph from a decoded API-format prompt.

        UI-format workflows (a dict carrying a "nodes" list) are rejected:
        their inputs are link descriptors and cannot be submitted as-is.
        """
        if not isinstance(payload, dict):
            return Result.Err(ErrorCode.INVALID_INPUT, "Workflow must be a JSON object keyed by node id")
        if isinstance(payload.get("nodes"), list):
            return Result.Err(
                ErrorCode.INVALID_INPUT,
                "Workflow is in UI format; export it with 'Save (API Format)'",
            )
        nodes: dict[str, GraphNode] = {}
        for node_id, raw in payload.items():
            if not isinstance(raw, dict):
                continue
            nodes[str(node_id)] = GraphNode.from_payload(raw)
        if not nodes:
            return Result.Err(ErrorCode.INVALID_INPUT, "Workflow contains no nodes")
        return Result.Ok(cls(nodes, source=source))

    @classmethod
    def from_json(cls, text: str, source: str | None = None) -> Result["GraphModel"]:
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as exc:
            return Result.Err(ErrorCode.PARSE_ERROR, f"Invalid workflow JSON: {exc}")
        return cls.from_payload(payload, source=source)

    def to_payload(self) -> dict[str, dict[str, Any]]:
        """Deep copy of the graph in the shape the server expects under "prompt"."""
        return {node_id: node.to_payload() for node_id, node in self._nodes.items()}

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_payload(), indent=indent, ensure_ascii=False)

    def copy(self) -> "GraphModel":
        return GraphModel({nid: GraphNode.from_payload(n.to_payload()) for nid, n in self._nodes.items()}, source=self.source)
