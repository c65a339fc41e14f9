"""Queue several prompts against one workflow and run them back to back.

Usage:
    python scripts/run_batch.py my_workflow.json "A red sports car" "A blue tank"
    python scripts/run_batch.py my_workflow.json --prompts-file prompts.txt
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from comfy_bridge import BridgeSettings, OutputKind, build_executor
from comfy_bridge.features.nodes import NodeKind, SamplerConfig, TextPromptConfig

DEFAULT_PROMPTS = (
    "A red sports car, cinematic lighting",
    "A blue futuristic tank, sci-fi style",
    "A green alien landscape, 8k",
    "A golden robot portrait, intricate details",
    "A cyberpunk city street at night, neon lights",
)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Queue a batch of prompts for one ComfyUI workflow.")
    parser.add_argument("workflow", help="Workflow filename under the workflows directory.")
    parser.add_argument("prompts", nargs="*", help="Prompts to run (default: a built-in list).")
    parser.add_argument("--prompts-file", default=None, help="Text file with one prompt per line.")
    parser.add_argument("--prompt-node", default="6", help="Node id of the text prompt node.")
    parser.add_argument("--sampler-node", default="3", help="Node id of the sampler node.")
    parser.add_argument(
        "--output",
        default=OutputKind.IMAGE.value,
        choices=[k.value for k in OutputKind],
        help="Expected output kind.",
    )
    return parser.parse_args()


def _load_prompts(args: argparse.Namespace) -> list[str]:
    prompts = list(args.prompts or [])
    if args.prompts_file:
        lines = Path(args.prompts_file).read_text(encoding="utf-8").splitlines()
        prompts.extend(line.strip() for line in lines if line.strip())
    return prompts or list(DEFAULT_PROMPTS)


async def _main(args: argparse.Namespace) -> int:
    settings = BridgeSettings.from_env()
    res = build_executor(
        args.workflow,
        settings=settings,
        expected_output=args.output,
        node_configs=[
            TextPromptConfig(node_id=args.prompt_node),
            SamplerConfig(node_id=args.sampler_node),
        ],
    )
    if not res.ok or res.data is None:
        print(f"error: {res.error}")
        return 1
    executor = res.data
    prompts = _load_prompts(args)
    failures = 0

    def _apply_settings(text: str) -> None:
        prompt_cfg = executor.find_config(args.prompt_node, NodeKind.TEXT_PROMPT)
        if prompt_cfg is not None:
            prompt_cfg.text_value = text
        sampler_cfg = executor.find_config(args.sampler_node, NodeKind.SAMPLER)
        if sampler_cfg is not None:
            sampler_cfg.randomize_seed = True
        print(f"[batch] prompt: {text}")

    def _report(outcome) -> None:
        nonlocal failures
        if outcome.ok:
            routed = outcome.data.routed
            print(f"[batch] done: {routed.file.filename if routed else '-'}")
        else:
            failures += 1
            print(f"[batch] failed [{outcome.code}]: {outcome.error}")

    print(f"Queueing {len(prompts)} jobs...")
    for text in prompts:
        executor.queue_generation(lambda text=text: _apply_settings(text), on_complete=_report)
    try:
        await executor.wait_until_idle()
    finally:
        await executor.aclose()
    return 1 if failures else 0


def main() -> int:
    return asyncio.run(_main(_parse_args()))


if __name__ == "__main__":
    raise SystemExit(main())
