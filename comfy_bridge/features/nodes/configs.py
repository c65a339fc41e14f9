"""
Typed node configurations.

A node config is bound to one node of the prompt graph by id and knows how
to write its values into that node's inputs. Key names vary between graph
authors and ComfyUI versions, so each kind writes to the first alias key
present on the node rather than relying on a schema.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Mapping

from ...shared import ErrorCode, Result, get_logger
from ...utils import is_unbound_node_id
from ..graph.model import GraphModel, GraphNode
from .images import ImageSource, RenderTextureSource, capture_render_texture, encode_png

logger = get_logger(__name__)

UNBOUND_NODE_ID = "-1"
SEED_MIN = 1
SEED_MAX_EXCLUSIVE = 2**31 - 1

TEXT_KEYS = ("text", "text_g", "string")
SEED_KEYS = ("seed", "noise_seed")

_seed_rng = random.Random()


def draw_seed(rng: random.Random | None = None) -> int:
    """Random seed in [1, 2**31 - 1)."""
    return (rng or _seed_rng).randrange(SEED_MIN, SEED_MAX_EXCLUSIVE)


class NodeKind(str, Enum):
    TEXT_PROMPT = "text_prompt"
    SAMPLER = "sampler"
    EMPTY_LATENT_IMAGE = "empty_latent_image"
    EMPTY_LATENT_AUDIO = "empty_latent_audio"
    IMAGE_INPUT = "image_input"
    RENDER_TEXTURE_INPUT = "render_texture_input"


@dataclass
class NodeConfig(ABC):
    node_id: str = UNBOUND_NODE_ID

    kind: ClassVar[NodeKind]
    # Substrings expected in the target node's lower-cased class_type
    type_hints: ClassVar[tuple[str, ...]] = ()

    def __post_init__(self) -> None:
        self.node_id = UNBOUND_NODE_ID if self.node_id is None else str(self.node_id).strip()

    @property
    def is_bound(self) -> bool:
        return not is_unbound_node_id(self.node_id)

    def matches_type(self, class_type: str) -> bool:
        ct = str(class_type or "").lower()
        return any(hint in ct for hint in self.type_hints)

    def apply_to_graph(self, graph: GraphModel) -> Result[bool]:
        """
        Write this config into its bound graph node.

        Returns Ok(False) when unbound, Err(CONFIG_BINDING) when the node id
        is not in the graph, Ok(True) once applied. Never raises.
        """
        if not self.is_bound:
            return Result.Ok(False)

        node = graph.get(self.node_id)
        if node is None:
            logger.warning("Node ID '%s' not found in workflow.", self.node_id)
            return Result.Err(
                ErrorCode.CONFIG_BINDING,
                f"Node ID '{self.node_id}' not found in workflow",
                node_id=self.node_id,
                kind=self.kind.value,
            )

        mismatch = not self.matches_type(node.class_type)
        if mismatch:
            logger.warning(
                "Potential type mismatch: node %s configured as '%s' but the workflow node is '%s'.",
                self.node_id,
                self.kind.value,
                node.class_type,
            )

        logger.debug("Applying %s to node %s", self.kind.value, self.node_id)
        applied = self._apply(node)
        meta: dict[str, Any] = {"node_id": self.node_id, "kind": self.kind.value}
        if mismatch:
            meta["warning"] = ErrorCode.TYPE_MISMATCH.value
        return Result.Ok(applied, **meta)

    @abstractmethod
    def _apply(self, node: GraphNode) -> bool:
        """Write into `node.inputs`; True when a value was written."""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.kind.value}
        for f in fields(self):
            if f.metadata.get("serialize", True):
                out[f.name] = getattr(self, f.name)
        return out


@dataclass
class TextPromptConfig(NodeConfig):
    text_value: str = ""

    kind: ClassVar[NodeKind] = NodeKind.TEXT_PROMPT
    type_hints: ClassVar[tuple[str, ...]] = ("text", "string")

    def _apply(self, node: GraphNode) -> bool:
        key = node.first_present(*TEXT_KEYS)
        if key is not None:
            node.inputs[key] = self.text_value
        return key is not None


@dataclass
class SamplerConfig(NodeConfig):
    randomize_seed: bool = True
    manual_seed: int = 12345
    steps: int = 20
    cfg: float = 8.0
    denoise: float = 1.0
    rng: random.Random | None = field(default=None, repr=False, compare=False, metadata={"serialize": False})

    kind: ClassVar[NodeKind] = NodeKind.SAMPLER
    type_hints: ClassVar[tuple[str, ...]] = ("sampler",)

    def next_seed(self) -> int:
        """Seed for this run; a randomized seed is kept in `manual_seed`."""
        if self.randomize_seed:
            self.manual_seed = draw_seed(self.rng)
        return int(self.manual_seed)

    def _apply(self, node: GraphNode) -> bool:
        seed = self.next_seed()
        key = node.first_present(*SEED_KEYS)
        if key is not None:
            node.inputs[key] = seed
        if node.has_input("steps"):
            node.inputs["steps"] = max(1, int(self.steps))
        if node.has_input("cfg"):
            node.inputs["cfg"] = float(self.cfg)
        if node.has_input("denoise"):
            node.inputs["denoise"] = float(self.denoise)
        return True


@dataclass
class EmptyLatentImageConfig(NodeConfig):
    width: int = 512
    height: int = 512

    kind: ClassVar[NodeKind] = NodeKind.EMPTY_LATENT_IMAGE
    type_hints: ClassVar[tuple[str, ...]] = ("image", "empty")

    def _apply(self, node: GraphNode) -> bool:
        if node.has_input("width"):
            node.inputs["width"] = int(self.width)
        if node.has_input("height"):
            node.inputs["height"] = int(self.height)
        if node.has_input("batch_size"):
            node.inputs["batch_size"] = 1
        return True


@dataclass
class EmptyLatentAudioConfig(NodeConfig):
    audio_seconds: float = 5.0

    kind: ClassVar[NodeKind] = NodeKind.EMPTY_LATENT_AUDIO
    type_hints: ClassVar[tuple[str, ...]] = ("audio", "empty")

    def _apply(self, node: GraphNode) -> bool:
        if node.has_input("seconds"):
            node.inputs["seconds"] = float(self.audio_seconds)
        return True


@dataclass
class _UploadedImageConfig(NodeConfig):
    uploaded_server_filename: str | None = field(default=None, metadata={"serialize": False})

    type_hints: ClassVar[tuple[str, ...]] = ("image", "load")
    upload_prefix: ClassVar[str] = "bridge_"

    @property
    @abstractmethod
    def has_image(self) -> bool:
        """True when an image source is set."""

    @abstractmethod
    def encode_upload(self) -> Result[bytes]:
        """PNG bytes to upload for this node."""

    def _apply(self, node: GraphNode) -> bool:
        if not self.uploaded_server_filename:
            logger.warning("Image node %s skipped (no uploaded filename).", self.node_id)
            return False
        node.inputs["image"] = self.uploaded_server_filename
        return True


@dataclass
class ImageInputConfig(_UploadedImageConfig):
    image: ImageSource | None = field(default=None, repr=False)

    kind: ClassVar[NodeKind] = NodeKind.IMAGE_INPUT
    upload_prefix: ClassVar[str] = "bridge_"

    @property
    def has_image(self) -> bool:
        return self.image is not None

    def encode_upload(self) -> Result[bytes]:
        return encode_png(self.image)

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["image"] = str(self.image) if isinstance(self.image, (str, Path)) else None
        return out


@dataclass
class RenderTextureInputConfig(_UploadedImageConfig):
    render_texture: RenderTextureSource | None = field(default=None, repr=False, metadata={"serialize": False})

    kind: ClassVar[NodeKind] = NodeKind.RENDER_TEXTURE_INPUT
    upload_prefix: ClassVar[str] = "bridge_rt_"

    @property
    def has_image(self) -> bool:
        return self.render_texture is not None

    def encode_upload(self) -> Result[bytes]:
        return capture_render_texture(self.render_texture)


UploadableConfig = _UploadedImageConfig

CONFIG_TYPES: dict[NodeKind, type[NodeConfig]] = {
    NodeKind.TEXT_PROMPT: TextPromptConfig,
    NodeKind.SAMPLER: SamplerConfig,
    NodeKind.EMPTY_LATENT_IMAGE: EmptyLatentImageConfig,
    NodeKind.EMPTY_LATENT_AUDIO: EmptyLatentAudioConfig,
    NodeKind.IMAGE_INPUT: ImageInputConfig,
    NodeKind.RENDER_TEXTURE_INPUT: RenderTextureInputConfig,
}

_KIND_ALIASES = {
    "textprompt": NodeKind.TEXT_PROMPT,
    "text": NodeKind.TEXT_PROMPT,
    "ksampler": NodeKind.SAMPLER,
    "emptylatentimage": NodeKind.EMPTY_LATENT_IMAGE,
    "emptylatentaudio": NodeKind.EMPTY_LATENT_AUDIO,
    "imageinput": NodeKind.IMAGE_INPUT,
    "image": NodeKind.IMAGE_INPUT,
    "rendertextureinput": NodeKind.RENDER_TEXTURE_INPUT,
}


def parse_node_kind(value: Any) -> NodeKind | None:
    if isinstance(value, NodeKind):
        return value
    raw = str(value or "").strip().lower()
    try:
        return NodeKind(raw)
    except ValueError:
        return _KIND_ALIASES.get(raw.replace("_", "").replace("-", ""))


def node_config_from_dict(data: Mapping[str, Any]) -> Result[NodeConfig]:
    """
    Build a node config from a plain mapping, e.g. `{"type": "sampler", "node_id": "3"}`.

    Unknown keys are ignored so authoring files can carry comments/labels.
    """
    if not isinstance(data, Mapping):
        return Result.Err(ErrorCode.INVALID_INPUT, "Node config must be a mapping")
    kind = parse_node_kind(data.get("type") or data.get("kind"))
    if kind is None:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Unknown node config type: {data.get('type')!r}")
    cls = CONFIG_TYPES[kind]
    allowed = {f.name for f in fields(cls) if f.metadata.get("serialize", True) and f.name != "rng"}
    kwargs = {k: v for k, v in data.items() if k in allowed}
    if "node_id" not in kwargs and "nodeID" in data:
        kwargs["node_id"] = data["nodeID"]
    try:
        return Result.Ok(cls(**kwargs))
    except (TypeError, ValueError) as exc:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid {kind.value} config: {exc}")
