"""Authoring helper: pull a node's current input values back into its config."""

from __future__ import annotations

from ...shared import ErrorCode, Result, get_logger
from ...utils import to_float, to_int
from ..graph.model import GraphModel
from .configs import (
    SEED_KEYS,
    TEXT_KEYS,
    EmptyLatentAudioConfig,
    EmptyLatentImageConfig,
    NodeConfig,
    SamplerConfig,
    TextPromptConfig,
)

logger = get_logger(__name__)


def load_defaults(config: NodeConfig, graph: GraphModel) -> Result[list[str]]:
    """
    Copy the bound node's input values into `config`.

    Only used while authoring; the run path never calls this.

    Returns:
        Ok(list of config field names that were updated)
    """
    if not config.is_bound:
        return Result.Err(ErrorCode.CONFIG_BINDING, "Node config is not bound to a node id")
    node = graph.get(config.node_id)
    if node is None:
        logger.warning("Node ID %s not found in workflow.", config.node_id)
        return Result.Err(ErrorCode.CONFIG_BINDING, f"Node ID '{config.node_id}' not found in workflow")
    if not config.matches_type(node.class_type):
        logger.warning(
            "Node %s is type '%s', but it is configured as '%s'. Values might not map correctly.",
            config.node_id,
            node.class_type,
            config.kind.value,
        )

    inputs = node.inputs
    updated: list[str] = []

    if isinstance(config, TextPromptConfig):
        key = node.first_present(*TEXT_KEYS)
        if key is not None and isinstance(inputs[key], str):
            config.text_value = inputs[key]
            updated.append("text_value")

    elif isinstance(config, SamplerConfig):
        key = node.first_present(*SEED_KEYS)
        if key is not None and inputs[key] is not None:
            config.manual_seed = to_int(inputs[key], config.manual_seed)
            updated.append("manual_seed")
        if inputs.get("steps") is not None:
            config.steps = max(1, to_int(inputs["steps"], config.steps))
            updated.append("steps")
        if inputs.get("cfg") is not None:
            config.cfg = to_float(inputs["cfg"], config.cfg)
            updated.append("cfg")
        if inputs.get("denoise") is not None:
            config.denoise = to_float(inputs["denoise"], config.denoise)
            updated.append("denoise")

    elif isinstance(config, EmptyLatentImageConfig):
        if inputs.get("width") is not None:
            config.width = to_int(inputs["width"], config.width)
            updated.append("width")
        if inputs.get("height") is not None:
            config.height = to_int(inputs["height"], config.height)
            updated.append("height")

    elif isinstance(config, EmptyLatentAudioConfig):
        if inputs.get("seconds") is not None:
            config.audio_seconds = to_float(inputs["seconds"], config.audio_seconds)
            updated.append("audio_seconds")

    logger.debug("Loaded defaults for node %s: %s", config.node_id, updated)
    return Result.Ok(updated)
