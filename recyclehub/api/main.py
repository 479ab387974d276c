from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from .config_loader import AppConfig, ConfigError, load_config
from .server import create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """CLI for the prediction proxy; flags win over file and environment."""
    parser = argparse.ArgumentParser(
        prog="recyclehub-api",
        description="Serve POST /api/predict, forwarding uploads to an upstream "
                    "waste classifier or answering with mock predictions.",
        epilog="Without an upstream URL (file, EXTERNAL_PREDICT_URL or "
               "--upstream-url) the server runs in mock mode.",
    )
    parser.add_argument(
        "--config",
        default="config/api.json",
        help="JSON settings file; skipped when missing (default: %(default)s)",
    )
    parser.add_argument("--host", help="Bind address")
    parser.add_argument("--port", type=int, help="Listen port")
    parser.add_argument(
        "--upstream-url",
        help="Classifier endpoint to forward predictions to",
    )
    return parser


def apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.host is not None:
        cfg.server.host = args.host
    if args.port is not None:
        cfg.server.port = args.port
    if args.upstream_url is not None:
        cfg = cfg.with_upstream_url(args.upstream_url)
    return cfg


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s"
        )
    args = build_parser().parse_args(argv)

    config_path = args.config if Path(args.config).exists() else None
    if config_path is None:
        logger.info("Configuration file %s not found; using defaults", args.config)
    try:
        cfg = load_config(config_path)
    except ConfigError as exc:
        logger.error("Failed to load configuration: %s", exc)
        sys.exit(1)

    cfg = apply_overrides(cfg, args)

    logger.info("Server configuration: %s:%d", cfg.server.host, cfg.server.port)
    if cfg.proxy.mock_mode:
        logger.warning("No upstream classifier configured; serving mock predictions")

    app = create_app(cfg.proxy)
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level="info")


if __name__ == "__main__":
    main()
