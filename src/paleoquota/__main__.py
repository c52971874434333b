"""CLI entry point for the PaleoQuota client.

A thin shell over [FeedReconciler][paleoquota.feed.reconciler.FeedReconciler]:
``feed`` follows the relay and logs every new post until interrupted,
``post`` submits one text note and exits.

Examples:
    ```bash
    python -m paleoquota feed
    python -m paleoquota post "gm"
    python -m paleoquota --config config/client.yaml --log-level DEBUG feed
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from paleoquota.core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    EncodingError,
    PublishingError,
)
from paleoquota.core.logger import Logger, StructuredFormatter
from paleoquota.core.metrics import MetricsServer
from paleoquota.core.yaml import load_yaml
from paleoquota.feed.configs import ClientConfig
from paleoquota.feed.reconciler import FeedReconciler
from paleoquota.models.post import Post


DEFAULT_CONFIG = Path("config") / "client.yaml"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

logger = Logger("cli")


async def run_feed(reconciler: FeedReconciler) -> int:
    """Log new posts until SIGINT or SIGTERM.

    Returns:
        Exit code: 0 after a graceful shutdown.
    """
    stop = asyncio.Event()
    seen: set[tuple[str, str]] = {post.dedup_key for post in reconciler.get_feed_snapshot()}

    for post in reversed(reconciler.get_feed_snapshot()):
        logger.info("post", pubkey=post.pubkey, content=post.content)

    def on_change(snapshot: tuple[Post, ...]) -> None:
        for post in reversed(snapshot):
            if post.dedup_key not in seen:
                seen.add(post.dedup_key)
                logger.info("post", pubkey=post.pubkey, content=post.content)

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        stop.set()

    unregister = reconciler.add_listener(on_change)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        await stop.wait()
    finally:
        unregister()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
    return EXIT_OK


async def run_post(reconciler: FeedReconciler, text: str) -> int:
    """Submit one post and print its author public key.

    Returns:
        Exit code: 0 if the relay accepted the post, 1 otherwise.
    """
    try:
        post = await reconciler.submit_post(text)
    except (PublishingError, ConnectivityError, EncodingError) as e:
        logger.error("post_failed", error=str(e))
        return EXIT_FAILURE
    print(post.pubkey)
    return EXIT_OK


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="paleoquota",
        description="PaleoQuota Nostr client",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Client config path (default: {DEFAULT_CONFIG})",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("feed", help="Follow the relay and log new posts")
    post = commands.add_parser("post", help="Publish one text note")
    post.add_argument("text", help="Post content")

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so every record
    renders as ``level name message key=value ...``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


async def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point: parse args, build the reconciler, run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = ClientConfig.from_dict(_load_yaml_dict(args.config))
        reconciler = FeedReconciler(config)
    except ConfigurationError as e:
        logger.error("config_invalid", error=str(e))
        return EXIT_FAILURE

    metrics_server = MetricsServer(config.metrics)
    try:
        await metrics_server.start()
    except OSError as e:
        logger.error("metrics_server_failed", error=str(e))
        return EXIT_FAILURE
    if metrics_server.is_running:
        logger.info(
            "metrics_server_started",
            host=config.metrics.host,
            port=config.metrics.port,
            path=config.metrics.path,
        )

    try:
        async with reconciler:
            if args.command == "post":
                return await run_post(reconciler, args.text)
            return await run_feed(reconciler)
    except KeyboardInterrupt:
        logger.info("interrupted")
        return EXIT_INTERRUPTED
    finally:
        await metrics_server.stop()


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    cli()
