"""Workflow graph model and file storage."""

from .model import GraphModel, GraphNode
from .storage import WorkflowStore

__all__ = ["GraphModel", "GraphNode", "WorkflowStore"]
