"""
ComfyUI bridge - drive a ComfyUI server from a host application.
"""

from .config import BridgeSettings
from .deps import build_executor
from .features.execution import OutputConsumers, RunReport, WorkflowExecutor
from .features.graph import GraphModel, GraphNode, WorkflowStore
from .features.nodes import (
    EmptyLatentAudioConfig,
    EmptyLatentImageConfig,
    ImageInputConfig,
    RenderTextureInputConfig,
    SamplerConfig,
    TextPromptConfig,
)
from .shared import OutputKind, Result

__all__ = [
    "BridgeSettings",
    "build_executor",
    "OutputConsumers",
    "RunReport",
    "WorkflowExecutor",
    "GraphModel",
    "GraphNode",
    "WorkflowStore",
    "TextPromptConfig",
    "SamplerConfig",
    "EmptyLatentImageConfig",
    "EmptyLatentAudioConfig",
    "ImageInputConfig",
    "RenderTextureInputConfig",
    "OutputKind",
    "Result",
]
