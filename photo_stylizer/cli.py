"""Command-line interface for the photo stylizer."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from .core import GenerationOrchestrator, OnboardingStore, build_backend, load_styles
from .models.schemas import GenerationSessionState
from .providers import GeminiClient
from .utils.config import Config, load_config
from .utils.errors import PhotoStylizerError
from .utils.images import load_photo, save_data_url
from .utils.logger import get_logger

logger = get_logger(__name__)

ONBOARDING_TEXT = """\
Welcome to Photo Stylizer.
  1. Pick a photo (JPEG, PNG or WebP, up to 10MB).
  2. Choose a style with --style, or describe your own with --prompt.
  3. Or run `batch` to render every style at once.
"""

CONFIG_BANNER = (
    "Image generation is not configured: set GEMINI_API_KEY (direct mode) "
    "or PROXY_URL (proxy mode)."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photo-stylizer",
        description="Restyle photos with an image generation model",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("styles", help="List the style catalog")

    gen = sub.add_parser("generate", help="Stylize a photo with one style or prompt")
    gen.add_argument("photo", type=Path)
    choice = gen.add_mutually_exclusive_group(required=True)
    choice.add_argument("--style", help="Style id from the catalog")
    choice.add_argument("--prompt", help="Custom transformation prompt")
    gen.add_argument("-o", "--output", type=Path, default=Path("styled-photo.jpg"))

    batch = sub.add_parser("batch", help="Stylize a photo with every catalog style")
    batch.add_argument("photo", type=Path)
    batch.add_argument("-o", "--output-dir", type=Path, default=Path("styled"))

    sub.add_parser("status", help="Check the image API")

    return parser


def _print_progress(state: GenerationSessionState):
    if state.is_generating:
        print(f"\r  progress {state.progress_percent:3d}%", end="", file=sys.stderr, flush=True)
    elif state.progress_percent == 100:
        print("\r  progress 100%", file=sys.stderr, flush=True)


def _show_onboarding(config: Config):
    store = OnboardingStore(config.onboarding_state_path)
    if not store.is_completed():
        print(ONBOARDING_TEXT)
        store.complete()


def cmd_styles(config: Config) -> int:
    catalog = load_styles(config.styles_path)
    for category, items in catalog.by_category().items():
        print(f"[{category.value}]")
        for style in items:
            print(f"  {style.id:<12} {style.display_name}")
    return 0


async def _run_with_orchestrator(config: Config, args: argparse.Namespace) -> int:
    backend = build_backend(config)
    if backend is None:
        print(CONFIG_BANNER, file=sys.stderr)
        return 2

    catalog = load_styles(config.styles_path)
    orchestrator = GenerationOrchestrator(backend, catalog, config)
    orchestrator.subscribe(_print_progress)
    orchestrator.select_photo(load_photo(args.photo))

    await backend.initialize()
    try:
        if args.command == "generate":
            result = await orchestrator.generate_selected(args.style, args.prompt)
            if not result.success:
                print(f"Generation failed ({result.kind.value}): {result.message}", file=sys.stderr)
                return 1
            print(f"Saved {save_data_url(result.image_url, args.output)}")
            return 0

        batch = await orchestrator.generate_all()
        for item in batch.items:
            if item.result.success:
                path = save_data_url(item.result.image_url, args.output_dir / f"{item.style.id}.jpg")
                print(f"  ok    {item.style.id:<12} {path}")
            else:
                print(f"  fail  {item.style.id:<12} {item.result.message}")
        print(f"{len(batch.succeeded)}/{len(batch.items)} styles generated")
        return 0 if batch.succeeded else 1
    finally:
        await backend.close()


async def _check_status(config: Config) -> int:
    if not config.has_api_key:
        print(CONFIG_BANNER, file=sys.stderr)
        return 2

    async with GeminiClient(
        api_key=config.gemini_api_key,
        model=config.gemini_model,
        base_url=config.gemini_base_url,
        timeout=config.request_timeout_seconds,
    ) as gemini:
        status = await gemini.check_status()

    print(f"{status.status}: {status.message}")
    return 0 if status.status == "success" else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config()

        if args.command == "styles":
            return cmd_styles(config)
        if args.command == "status":
            return asyncio.run(_check_status(config))

        _show_onboarding(config)
        return asyncio.run(_run_with_orchestrator(config, args))

    except PhotoStylizerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
