"""memfill: fill a web form from your stored memories.

Usage:
    python main.py <form_url>
    python main.py https://example.com/apply --memories config/memories.yaml
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from memfill.autofill.models import AutofillProgress
from memfill.autofill.session import AutofillSession
from memfill.core.config import Settings
from memfill.core.logging import setup_logging
from memfill.memory.store import YamlMemoryStore

logger = logging.getLogger(__name__)


def _print_progress(progress: AutofillProgress) -> None:
    print(f"  [{progress.state.value}] {progress.message}")


async def _run(url: str, settings: Settings, memories_path: Path) -> int:
    session = AutofillSession(settings, YamlMemoryStore(memories_path))
    session.subscribe(_print_progress)

    try:
        result = await session.run_autofill(url)
    except asyncio.CancelledError:
        await session.stop()
        raise

    logger.info("=" * 50)
    if not result.success:
        logger.error(f"Autofill failed ({result.error_kind}): {result.error}")
        return 1

    logger.info(f"Filled {len(result.filled_fields)}/{len(result.mappings)} fields")
    for mapping in result.mappings:
        marker = "x" if mapping.field_opid in result.filled_fields else " "
        logger.info(
            f"[{marker}] {mapping.field_opid} = {mapping.value!r} "
            f"({mapping.confidence:.2f}) {mapping.reasoning}"
        )
    return 0


def main() -> int:
    """Run autofill for one URL."""
    parser = argparse.ArgumentParser(
        description="Fill a web form using your stored memories"
    )
    parser.add_argument(
        "url",
        help="URL of the page containing the form"
    )
    parser.add_argument(
        "--config", "-c",
        default="config/settings.yaml",
        help="Path to settings YAML file"
    )
    parser.add_argument(
        "--memories", "-m",
        default="config/memories.yaml",
        help="Path to memories YAML file"
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run the browser without a window"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    setup_logging("DEBUG" if args.debug else "INFO")
    logger.info("=== memfill ===")
    logger.info(f"Target: {args.url}")

    config_path = Path(args.config)
    if config_path.exists():
        settings = Settings.from_yaml(config_path)
    else:
        logger.warning(f"Settings not found at {config_path}, using defaults and environment")
        settings = Settings()

    if args.headless:
        settings.browser.headless = True

    try:
        return asyncio.run(_run(args.url, settings, Path(args.memories)))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
