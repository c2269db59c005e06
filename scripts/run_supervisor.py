#!/usr/bin/env python3
"""
Run the fleet supervisor.

Loads the agent roster, prepares the shared Q-tables and knowledge base,
spawns one process per agent and keeps them alive until interrupted.

Usage:
    python run_supervisor.py --roster shared/botsConfig.json
    python run_supervisor.py --roster fleet.yaml --data-dir fleet_data --respawn-delay 5

Environment variables can also be used:
    FLEET_ROSTER=fleet.yaml FLEET_DATA_DIR=fleet_data python run_supervisor.py
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fleet_agent.log_setup import setup_logging
from fleet_agent.supervisor import Supervisor, SupervisorConfig


def parse_args():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Run the agent fleet supervisor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--roster',
        type=str,
        default=None,
        help='Roster file, JSON or YAML (default: shared/botsConfig.json or FLEET_ROSTER env var)'
    )

    parser.add_argument(
        '--data-dir',
        type=str,
        default=None,
        help='Directory for Q-tables and the knowledge base (default: fleet_data or FLEET_DATA_DIR env var)'
    )

    parser.add_argument(
        '--log-dir',
        type=str,
        default=None,
        help='Directory for supervisor and agent logs (default: logs or FLEET_LOG_DIR env var)'
    )

    parser.add_argument(
        '--respawn-delay',
        type=float,
        default=None,
        help='Seconds before an exited agent is restarted (default: 10)'
    )

    parser.add_argument(
        '--keepalive-interval',
        type=float,
        default=None,
        help='Seconds between keepAlive broadcasts (default: 5)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser.parse_args()


def create_config_from_args(args) -> SupervisorConfig:
    """Create SupervisorConfig from command line arguments"""
    # Start with defaults (which will read from env vars)
    config = SupervisorConfig()

    if args.roster:
        config.roster_path = args.roster

    if args.data_dir:
        config.data_dir = args.data_dir

    if args.log_dir:
        config.log_dir = args.log_dir

    if args.respawn_delay is not None:
        config.respawn_delay = args.respawn_delay

    if args.keepalive_interval is not None:
        config.keepalive_interval = args.keepalive_interval

    if args.verbose:
        config.verbose = True

    config.validate()
    return config


def main():
    """Main entry point"""
    args = parse_args()

    try:
        config = create_config_from_args(args)
    except ValueError as e:
        print(f"Error creating configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(Path(config.log_dir) / "supervisor.log", config.verbose)

    logger = logging.getLogger(__name__)
    logger.info("Starting fleet supervisor")
    logger.info(f"Roster: {config.roster_path}")
    logger.info(f"Data dir: {config.data_dir}")
    logger.info(f"Respawn delay: {config.respawn_delay}s")

    try:
        asyncio.run(Supervisor(config).run())
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
