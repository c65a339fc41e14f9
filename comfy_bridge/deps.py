"""
Dependency injection - builds an executor wired to a ComfyUI server.
Simple, debug-friendly DI without framework magic.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .adapters.comfy import ComfyClient, ExecutionBackend
from .adapters.models import ModelLoader
from .config import BridgeSettings
from .features.execution import OutputConsumers, WorkflowExecutor
from .features.graph import WorkflowStore
from .features.nodes import NodeConfig, node_config_from_dict
from .shared import ErrorCode, OutputKind, Result, get_logger

logger = get_logger(__name__)


def build_node_configs(items: Iterable[NodeConfig | Mapping[str, Any]]) -> Result[list[NodeConfig]]:
    configs: list[NodeConfig] = []
    for idx, item in enumerate(items or []):
        if isinstance(item, NodeConfig):
            configs.append(item)
            continue
        res = node_config_from_dict(item)
        if not res.ok or res.data is None:
            return Result.Err(res.code or ErrorCode.INVALID_INPUT, f"Node config #{idx}: {res.error}")
        configs.append(res.data)
    return Result.Ok(configs)


def build_executor(
    workflow_filename: str,
    *,
    settings: BridgeSettings | None = None,
    backend: ExecutionBackend | None = None,
    expected_output: OutputKind | str = OutputKind.IMAGE,
    node_configs: Iterable[NodeConfig | Mapping[str, Any]] = (),
    consumers: OutputConsumers | None = None,
    model_loader: ModelLoader | None = None,
) -> Result[WorkflowExecutor]:
    """
    Build a `WorkflowExecutor` and load its workflow.

    Args:
        workflow_filename: File under `settings.workflows_dir`
        settings: Bridge settings (default: from environment)
        backend: Execution backend (default: a `ComfyClient` for `settings.server_url`)

    Returns:
        Result[WorkflowExecutor]; WORKFLOW_MISSING / INVALID_INPUT on bad input
    """
    settings = settings or BridgeSettings.from_env()
    if OutputKind.parse(expected_output) is None:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Unknown expected output kind: {expected_output!r}")
    configs_res = build_node_configs(node_configs)
    if not configs_res.ok:
        return configs_res.carry("Invalid node configs")

    store = WorkflowStore(settings.workflows_dir)
    graph_res = store.load(workflow_filename)
    if not graph_res.ok:
        return graph_res.carry("Workflow not loaded")

    if backend is None:
        backend = ComfyClient(settings.server_url, timeout=settings.http_timeout)
        logger.info("Using ComfyUI server at %s", settings.server_url)

    executor = WorkflowExecutor(
        backend,
        workflow_filename,
        settings=settings,
        store=store,
        expected_output=expected_output,
        node_configs=configs_res.data,
        consumers=consumers,
        model_loader=model_loader,
        graph=graph_res.data,
    )
    return Result.Ok(executor)
