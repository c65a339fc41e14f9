"""
Workflow executor: upload -> apply -> submit -> poll -> route.

One run at a time. A second `execute()` while a run is in flight is
rejected with BUSY and its callback is never invoked. Queued generations
are drained in FIFO order, each setup action running right before its own
run so it only affects that submission.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional
from uuid import uuid4

from ...adapters.comfy.interface import ExecutionBackend, OutputManifest
from ...adapters.models.loader import ModelLoader
from ...config import BridgeSettings
from ...shared import (
    ErrorCode,
    OutputKind,
    Result,
    bind_run_id,
    get_logger,
    log_structured,
    log_success,
)
from ..graph.model import GraphModel
from ..graph.storage import WorkflowStore
from ..nodes.configs import NodeConfig, NodeKind, SamplerConfig, UploadableConfig
from .router import OutputConsumers, ResultRouter, RoutedOutput

logger = get_logger(__name__)


class ExecutionState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    APPLYING = "applying"
    SUBMITTING = "submitting"
    POLLING = "polling"
    ROUTING = "routing"
    FAILED = "failed"


@dataclass(frozen=True)
class ExecutionJob:
    prompt_id: str
    expected_output: OutputKind


@dataclass
class RunReport:
    run_id: str = ""
    prompt_id: str | None = None
    client_id: str | None = None
    expected_output: OutputKind = OutputKind.IMAGE
    routed: RoutedOutput | None = None
    uploads: dict[str, str] = field(default_factory=dict)
    seeds: dict[str, int] = field(default_factory=dict)
    binding_errors: list[str] = field(default_factory=list)
    poll_attempts: int = 0
    duration_seconds: float = 0.0


CompletionCallback = Callable[[Result[RunReport]], Optional[Awaitable[Any]]]
SetupAction = Callable[[], Any]


class WorkflowExecutor:
    def __init__(
        self,
        backend: ExecutionBackend,
        workflow_filename: str | None = None,
        *,
        settings: BridgeSettings | None = None,
        store: WorkflowStore | None = None,
        expected_output: OutputKind | str = OutputKind.IMAGE,
        node_configs: Iterable[NodeConfig] | None = None,
        consumers: OutputConsumers | None = None,
        model_loader: ModelLoader | None = None,
        graph: GraphModel | None = None,
    ):
        kind = OutputKind.parse(expected_output)
        if kind is None:
            raise ValueError(f"Unknown expected output kind: {expected_output!r}")
        self._backend = backend
        self._settings = settings or BridgeSettings.from_env()
        self._store = store or WorkflowStore(self._settings.workflows_dir)
        self.workflow_filename = workflow_filename
        self.expected_output = kind
        self.node_configs: list[NodeConfig] = list(node_configs or [])
        self._router = ResultRouter(
            backend,
            self._settings.download_dir,
            consumers=consumers,
            model_loader=model_loader,
        )
        self._graph = graph
        self._state = ExecutionState.IDLE
        self._busy = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._current_job: ExecutionJob | None = None
        self._queue: deque[tuple[SetupAction | None, CompletionCallback | None]] = deque()
        self._drain_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ExecutionState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def graph(self) -> GraphModel | None:
        return self._graph

    @property
    def current_job(self) -> ExecutionJob | None:
        return self._current_job

    async def aclose(self) -> None:
        await self._backend.aclose()

    def _set_state(self, state: ExecutionState) -> None:
        if state is not self._state:
            logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state

    def find_config(self, node_id: str, kind: NodeKind | None = None) -> NodeConfig | None:
        for cfg in self.node_configs:
            if cfg.node_id == str(node_id) and (kind is None or cfg.kind is kind):
                return cfg
        return None

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def load_workflow(self) -> Result[GraphModel]:
        if not self.workflow_filename:
            return Result.Err(ErrorCode.WORKFLOW_MISSING, "No workflow filename configured")
        res = self._store.load(self.workflow_filename)
        if res.ok and res.data is not None:
            self._graph = res.data
        return res

    def reload_workflow(self) -> Result[GraphModel]:
        if self._busy:
            return Result.Err(ErrorCode.BUSY, "Cannot reload the workflow while a run is in flight")
        return self.load_workflow()

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def queue_generation(self, setup: SetupAction | None, on_complete: CompletionCallback | None = None) -> None:
        """
        Queue a run whose `setup` action mutates node configs right before it starts.

        Must be called from within a running event loop.
        """
        self._queue.append((setup, on_complete))
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain_queue())

    async def _drain_queue(self) -> None:
        while self._queue:
            # A directly invoked execute() may hold the slot; queued runs go after it.
            await self._idle.wait()
            if self._busy or not self._queue:
                continue
            setup, on_complete = self._queue.popleft()
            if setup is not None:
                try:
                    ret = setup()
                    if inspect.isawaitable(ret):
                        await ret
                except Exception as exc:
                    logger.exception("Queued setup action failed; run skipped")
                    await _invoke_callback(
                        on_complete,
                        Result.Err(ErrorCode.INVALID_INPUT, f"Setup action failed: {exc}"),
                    )
                    continue
            while self._busy:
                await self._idle.wait()
            await self.execute(on_complete)

    async def wait_until_idle(self) -> None:
        """Wait until the queue is drained and no run is in flight."""
        while True:
            task = self._drain_task
            if task is not None and not task.done():
                await task
                continue
            if self._busy:
                await self._idle.wait()
                continue
            return

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute_sync(self, on_complete: CompletionCallback | None = None) -> Result[RunReport]:
        """Blocking wrapper for scripts without a running loop."""
        return asyncio.run(self.execute(on_complete))

    async def execute(self, on_complete: CompletionCallback | None = None) -> Result[RunReport]:
        if self._busy:
            logger.warning("Workflow is already running.")
            return Result.Err(ErrorCode.BUSY, "Workflow is already running")

        # Claimed before the first await so a concurrent caller sees it.
        self._busy = True
        self._idle.clear()
        with bind_run_id() as run_id:
            report = RunReport(run_id=run_id, expected_output=self.expected_output)
            started = time.monotonic()
            try:
                try:
                    result = await self._run(report)
                except Exception as exc:
                    logger.exception("Workflow run crashed")
                    result = Result.Err(ErrorCode.TRANSPORT_FAILURE, f"Run crashed: {exc}", report=report)
                report.duration_seconds = round(time.monotonic() - started, 3)
                if not result.ok:
                    self._set_state(ExecutionState.FAILED)
                log_structured(
                    logger,
                    logging.INFO if result.ok else logging.WARNING,
                    "Workflow execution complete",
                    ok=result.ok,
                    code=result.code,
                    prompt_id=report.prompt_id,
                    duration_seconds=report.duration_seconds,
                )
            finally:
                self._current_job = None
                self._set_state(ExecutionState.IDLE)
                self._busy = False
                self._idle.set()

        await _invoke_callback(on_complete, result)
        return result

    def _fail(self, code: ErrorCode | str, message: str, report: RunReport) -> Result[RunReport]:
        logger.error("%s", message)
        return Result.Err(code, message, report=report)

    async def _run(self, report: RunReport) -> Result[RunReport]:
        if self._graph is None:
            loaded = self.load_workflow()
            if not loaded.ok:
                return self._fail(ErrorCode.WORKFLOW_MISSING, loaded.error or "Workflow not loaded", report)
        graph = self._graph
        assert graph is not None

        upload = await self._upload_inputs(report)
        if not upload.ok:
            return upload

        self._set_state(ExecutionState.APPLYING)
        for cfg in self.node_configs:
            applied = cfg.apply_to_graph(graph)
            if not applied.ok:
                report.binding_errors.append(applied.error or cfg.node_id)
                if self._settings.strict_bindings:
                    return self._fail(ErrorCode.CONFIG_BINDING, applied.error or "Node binding failed", report)
            elif isinstance(cfg, SamplerConfig) and applied.data:
                report.seeds[cfg.node_id] = int(cfg.manual_seed)

        self._set_state(ExecutionState.SUBMITTING)
        report.client_id = str(uuid4())
        submitted = await self._backend.submit(graph.to_payload(), report.client_id)
        if not submitted.ok or not submitted.data:
            return self._fail(submitted.code if not submitted.ok else ErrorCode.TRANSPORT_FAILURE,
                              submitted.error or "Server returned no prompt id", report)
        report.prompt_id = submitted.data
        self._current_job = ExecutionJob(prompt_id=submitted.data, expected_output=self.expected_output)
        logger.info("Prompt queued: %s", submitted.data)

        self._set_state(ExecutionState.POLLING)
        polled = await self._poll(submitted.data, report)
        if not polled.ok:
            return self._fail(polled.code, polled.error or "Polling failed", report)

        self._set_state(ExecutionState.ROUTING)
        routed = await self._router.route(polled.data, self.expected_output)
        if not routed.ok:
            return routed.carry("Routing failed", report=report)
        report.routed = routed.data
        log_success(logger, f"Output ready: {routed.data.file.filename if routed.data else '-'}")
        return Result.Ok(report)

    async def _upload_inputs(self, report: RunReport) -> Result[RunReport]:
        self._set_state(ExecutionState.UPLOADING)
        for cfg in self.node_configs:
            if not isinstance(cfg, UploadableConfig) or not cfg.is_bound or not cfg.has_image:
                continue
            encoded = cfg.encode_upload()
            if not encoded.ok or encoded.data is None:
                return self._fail(encoded.code, f"Image for node {cfg.node_id}: {encoded.error}", report)
            temp_name = f"{cfg.upload_prefix}{uuid4()}.png"
            uploaded = await self._backend.upload_image(encoded.data, temp_name)
            if not uploaded.ok or not uploaded.data:
                cfg.uploaded_server_filename = None
                return self._fail(
                    uploaded.code if not uploaded.ok else ErrorCode.TRANSPORT_FAILURE,
                    f"Upload for node {cfg.node_id} failed: {uploaded.error or 'no filename returned'}",
                    report,
                )
            cfg.uploaded_server_filename = uploaded.data
            report.uploads[cfg.node_id] = uploaded.data
        return Result.Ok(report)

    async def _poll(self, prompt_id: str, report: RunReport) -> Result[OutputManifest]:
        loop = asyncio.get_running_loop()
        timeout = self._settings.poll_timeout
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            await asyncio.sleep(self._settings.poll_interval)
            report.poll_attempts += 1
            res = await self._backend.poll_status(prompt_id)
            if res.ok and res.data is not None:
                return Result.Ok(res.data)
            if not res.ok:
                logger.debug("Poll %d for %s failed: %s", report.poll_attempts, prompt_id, res.error)
            if deadline is not None and loop.time() >= deadline:
                return Result.Err(ErrorCode.TIMEOUT, f"Prompt {prompt_id} not finished after {timeout}s")


async def _invoke_callback(callback: CompletionCallback | None, result: Result[RunReport]) -> None:
    if callback is None:
        return
    try:
        ret = callback(result)
        if inspect.isawaitable(ret):
            await ret
    except Exception:
        logger.exception("Completion callback raised")
