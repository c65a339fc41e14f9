"""Workflow file storage: `<workflows_dir>/<filename>` -> GraphModel."""

from __future__ import annotations

from pathlib import Path

from ...path_utils import is_within_root, safe_rel_path
from ...shared import ErrorCode, Result, get_logger
from .model import GraphModel

logger = get_logger(__name__)


class WorkflowStore:
    def __init__(self, workflows_dir: str | Path):
        self._root = Path(workflows_dir)

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, filename: str) -> Result[Path]:
        rel = safe_rel_path(filename)
        if rel is None or str(rel) in ("", "."):
            return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid workflow filename: {filename!r}")
        path = self._root / rel
        if not path.is_file():
            return Result.Err(ErrorCode.WORKFLOW_MISSING, f"Workflow file missing at: {path}")
        if not is_within_root(path, self._root):
            return Result.Err(ErrorCode.INVALID_INPUT, f"Workflow path escapes workflows dir: {filename!r}")
        return Result.Ok(path)

    def load(self, filename: str) -> Result[GraphModel]:
        path_res = self.resolve(filename)
        if not path_res.ok or path_res.data is None:
            logger.error("%s", path_res.error)
            return path_res.carry("Workflow not found")
        path = path_res.data
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to read workflow %s: %s", path, exc)
            return Result.Err(ErrorCode.PARSE_ERROR, f"Failed to read workflow: {exc}")
        graph_res = GraphModel.from_json(text, source=str(filename))
        if not graph_res.ok:
            logger.error("Workflow %s rejected: %s", filename, graph_res.error)
            return graph_res
        logger.debug("Loaded workflow %s (%d nodes)", filename, len(graph_res.data or ()))
        return graph_res

    def list_workflows(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(str(p.relative_to(self._root)) for p in self._root.rglob("*.json") if p.is_file())
