"""Run one workflow with a prompt and a randomized seed.

Usage:
    python scripts/run_workflow.py my_workflow.json --prompt "A red sports car" \
        --prompt-node 6 --sampler-node 3
"""

from __future__ import annotations

import argparse
import asyncio
import random
from pathlib import Path

from comfy_bridge import BridgeSettings, OutputConsumers, OutputKind, build_executor
from comfy_bridge.features.nodes import SamplerConfig, TextPromptConfig

COLORS = ("Red", "Blue", "Green", "Golden", "Cyberpunk")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Submit a ComfyUI workflow and fetch its output.")
    parser.add_argument("workflow", help="Workflow filename under the workflows directory.")
    parser.add_argument("--prompt", default=None, help="Prompt text (default: a random car prompt).")
    parser.add_argument("--prompt-node", default="6", help="Node id of the text prompt node.")
    parser.add_argument("--sampler-node", default="3", help="Node id of the sampler node.")
    parser.add_argument(
        "--output",
        default=OutputKind.IMAGE.value,
        choices=[k.value for k in OutputKind],
        help="Expected output kind.",
    )
    parser.add_argument("--server", default=None, help="ComfyUI server URL.")
    parser.add_argument("--workflows-dir", default=None, help="Directory holding workflow JSON files.")
    return parser.parse_args()


def _save_image(download_dir: Path):
    def _consume(image, file) -> None:
        download_dir.mkdir(parents=True, exist_ok=True)
        target = download_dir / Path(file.filename).name
        image.save(target)
        print(f"saved {target} ({image.width}x{image.height})")

    return _consume


async def _main(args: argparse.Namespace) -> int:
    overrides = {}
    if args.server:
        overrides["server_url"] = args.server
    if args.workflows_dir:
        overrides["workflows_dir"] = Path(args.workflows_dir).resolve()
    settings = BridgeSettings.from_env().with_overrides(**overrides)

    prompt = args.prompt or f"A futuristic {random.choice(COLORS)} sports car, cinematic lighting, 8k"
    res = build_executor(
        args.workflow,
        settings=settings,
        expected_output=args.output,
        node_configs=[
            TextPromptConfig(node_id=args.prompt_node, text_value=prompt),
            SamplerConfig(node_id=args.sampler_node, randomize_seed=True),
        ],
        consumers=OutputConsumers(
            on_image=_save_image(settings.download_dir),
            on_audio_file=lambda path, _file: print(f"saved {path}"),
        ),
    )
    if not res.ok or res.data is None:
        print(f"error: {res.error}")
        return 1
    executor = res.data
    try:
        outcome = await executor.execute()
    finally:
        await executor.aclose()
    if not outcome.ok:
        print(f"run failed [{outcome.code}]: {outcome.error}")
        return 1
    report = outcome.data
    print(f"prompt {report.prompt_id} done in {report.duration_seconds}s, seeds={report.seeds}")
    return 0


def main() -> int:
    return asyncio.run(_main(_parse_args()))


if __name__ == "__main__":
    raise SystemExit(main())
