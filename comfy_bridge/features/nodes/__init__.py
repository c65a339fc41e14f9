"""Typed node configurations applied to workflow graphs."""

from .configs import (
    CONFIG_TYPES,
    UNBOUND_NODE_ID,
    EmptyLatentAudioConfig,
    EmptyLatentImageConfig,
    ImageInputConfig,
    NodeConfig,
    NodeKind,
    RenderTextureInputConfig,
    SamplerConfig,
    TextPromptConfig,
    UploadableConfig,
    draw_seed,
    node_config_from_dict,
)
from .defaults import load_defaults

__all__ = [
    "CONFIG_TYPES",
    "UNBOUND_NODE_ID",
    "NodeConfig",
    "NodeKind",
    "TextPromptConfig",
    "SamplerConfig",
    "EmptyLatentImageConfig",
    "EmptyLatentAudioConfig",
    "ImageInputConfig",
    "RenderTextureInputConfig",
    "UploadableConfig",
    "draw_seed",
    "node_config_from_dict",
    "load_defaults",
]
