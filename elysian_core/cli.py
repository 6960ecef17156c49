"""
Command line front end for the inference engine.

Usage:
    elysian-core models
    elysian-core pose photo.jpg
    elysian-core style photo.jpg out.png --strength 0.8 --blend-mode overlay
    elysian-core upscale photo.jpg out.png --scale 2
    elysian-core enhance portrait.jpg out.png
    elysian-core serve

Each invocation builds one engine from the environment settings, runs the
command, and unloads every model before exiting.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from elysian_core.catalog import STYLE_MODEL_ID
from elysian_core.config import Settings
from elysian_core.engine import Engine
from elysian_core.errors import EngineError
from elysian_core.image import load_image, save_image
from elysian_core.models import StyleTransferOptions

logger = logging.getLogger("elysian_core.cli")


def positive_float(value: str) -> float:
    number = float(value)
    if not number > 0:
        raise argparse.ArgumentTypeError(f"must be a positive number, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="elysian-core", description="On-device AI inference engine")
    parser.add_argument('--models-dir', help='Directory holding the model weights (overrides MODELS_DIR)')
    parser.add_argument('--cpu-only', action='store_true', help='Never use GPU execution providers')
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("models", help="List catalogued models")

    pose = sub.add_parser("pose", help="Detect body keypoints and print them as JSON")
    pose.add_argument("image")

    style = sub.add_parser("style", help="Apply artistic style transfer")
    style.add_argument("image")
    style.add_argument("output")
    style.add_argument('--style-id', default=STYLE_MODEL_ID)
    style.add_argument('--strength', type=float, default=1.0)
    style.add_argument('--preserve-colors', action='store_true')
    style.add_argument('--blend-mode', choices=["normal", "multiply", "overlay"], default="normal")

    upscale = sub.add_parser("upscale", help="Upscale an image")
    upscale.add_argument("image")
    upscale.add_argument("output")
    upscale.add_argument('--scale', type=positive_float, default=2.0, help='Scale factor, greater than 0')

    enhance = sub.add_parser("enhance", help="Enhance a portrait")
    enhance.add_argument("image")
    enhance.add_argument("output")

    sub.add_parser("serve", help="Run the HTTP API")
    return parser


async def run_command(engine: Engine, args: argparse.Namespace) -> int:
    try:
        if args.command == "models":
            for model in engine.get_available_models():
                print(f"{model.id:28} {model.task.value:15} {model.name}")
            return 0

        if args.command == "pose":
            pose = await engine.detect_pose(load_image(args.image))
            print(json.dumps(pose.model_dump(), indent=2))
            return 0

        if args.command == "style":
            options = StyleTransferOptions(
                style_strength=args.strength,
                preserve_colors=args.preserve_colors,
                blend_mode=args.blend_mode,
            )
            result = await engine.apply_style_transfer(load_image(args.image), args.style_id, options)
        elif args.command == "upscale":
            result = await engine.upscale_image(load_image(args.image), args.scale)
        else:
            result = await engine.enhance_image(load_image(args.image))

        save_image(result, args.output)
        print(f"Wrote {result.width}x{result.height} image to {args.output}")
        return 0
    except EngineError as exc:
        logger.error(f"[{exc.stage}] {exc.message}")
        return 1
    finally:
        await engine.unload_all_models()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        from elysian_core.main import run
        run()
        return 0

    settings = Settings()
    if args.models_dir:
        settings.MODELS_DIR = args.models_dir
    if args.cpu_only:
        settings.PREFER_GPU = False

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    engine = Engine.from_settings(settings)
    return asyncio.run(run_command(engine, args))


if __name__ == '__main__':
    sys.exit(main())
