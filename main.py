#!/usr/bin/env python3
"""
main.py - Main entry point for the Minecraft Patrol Bot.

This script starts the web dashboard and, optionally, connects the bot
straight away. Without --connect the bot waits until a server is set
from the dashboard.

Usage:
    python main.py                              Serve the dashboard
    python main.py run --connect                Connect to the configured server
    python main.py run --host mc.example.org    Override the server host
    python main.py run --web-port 8080          Serve the dashboard on port 8080

SAFETY NOTE:
The bot is intended to be used only where automation is explicitly
allowed by the server owner. Do not use this in violation of any
server's terms of service.
"""

import argparse
import sys
import os
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from utils import Config, ConfigError
from patrol_bot import BotController, create_app

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger("patrol_bot.main")


def setup_logging(level: str = 'INFO', log_file: str = None) -> None:
    """Configure root logging, optionally mirroring to a file."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers
    )


def load_settings(args) -> Config:
    """Load the config file and apply command line overrides."""
    config = Config.load(args.config)

    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.web_host:
        config.web.host = args.web_host
    if args.web_port:
        config.web.port = args.web_port

    config.validate()
    return config


def run(args) -> int:
    """Run the bot controller and dashboard until interrupted."""
    try:
        config = load_settings(args)
    except ConfigError as e:
        logger.error(f"Error loading {args.config}: {e}")
        return 1

    controller = BotController(config, args.config)
    app = create_app(controller)

    if args.connect:
        controller.connect_configured_server()
    else:
        logger.info("Bot ready. Waiting for server configuration...")

    logger.info(f"Web dashboard running on port {config.web.port}")
    logger.info(f"Visit: http://localhost:{config.web.port}")

    try:
        app.run(host=config.web.host, port=config.web.port, threaded=True)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        controller.shutdown()

    return 0


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--config', type=str,
                        help='Path to configuration file')
    parser.add_argument('--host', type=str,
                        help='Minecraft server host')
    parser.add_argument('--port', type=int,
                        help='Minecraft server port')
    parser.add_argument('--web-host', type=str,
                        help='Dashboard listen address')
    parser.add_argument('--web-port', type=int,
                        help='Dashboard port')
    parser.add_argument('--connect', action='store_true',
                        help='Connect to the configured server on startup')
    parser.add_argument('--log-level', type=str,
                        help='Logging level (DEBUG, INFO, WARNING, ...)')
    parser.add_argument('--log-file', type=str,
                        help='Also write logs to this file')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Minecraft Patrol Bot - wander around a center point, controlled from a web dashboard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                              Serve the dashboard only
  python main.py run --connect                Connect on startup
  python main.py run --config bot.yaml        Use a YAML config file
        """
    )
    _add_common_options(parser)
    parser.set_defaults(config='config.json', log_level='INFO')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    # Options are accepted both before and after "run"; the subparser only
    # sets what was given after it, so earlier values are not overwritten
    run_parser = subparsers.add_parser(
        'run',
        argument_default=argparse.SUPPRESS,
        help='Run the bot and dashboard'
    )
    _add_common_options(run_parser)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
