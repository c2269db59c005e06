#!/usr/bin/env python3
"""
Run a single agent without a supervisor.

Useful for trying one role against the simulated world (or a world agent
named by FLEET_WORLD_FACTORY). The agent still reads and writes the
shared tables under --data-dir; there is simply nobody to relay help
requests, so every request ends in the agent's own fallback.

Usage:
    python run_agent.py --name MapSniffer --role Explorer
    python run_agent.py --name WanderWrench --role Miner --data-dir fleet_data -v
"""

import argparse
import asyncio
import logging
import multiprocessing
import sys
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fleet_agent.agent import AgentConfig, AgentRuntime, AgentRuntimeConfig, Role
from fleet_agent.coordination import channel_pair
from fleet_agent.log_setup import setup_logging


def parse_args():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Run one fleet agent standalone",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument('--name', type=str, required=True, help='Agent name')
    parser.add_argument(
        '--role',
        type=str,
        default=Role.DEFAULT.value,
        choices=[role.value for role in Role],
        help='Agent role (default: Default)'
    )
    parser.add_argument('--host', type=str, default='127.0.0.1', help='World server host')
    parser.add_argument('--port', type=int, default=25565, help='World server port')
    parser.add_argument(
        '--data-dir',
        type=str,
        default=None,
        help='Directory for Q-tables and the knowledge base (default: fleet_data or FLEET_DATA_DIR env var)'
    )
    parser.add_argument(
        '--decision-interval',
        type=float,
        default=None,
        help='Seconds between decision cycles (default: 5)'
    )
    parser.add_argument('--log-file', type=str, default=None, help='Also log to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    return parser.parse_args()


def main():
    """Main entry point"""
    args = parse_args()

    try:
        agent_config = AgentConfig(name=args.name, role=Role.parse(args.role), host=args.host, port=args.port)
        runtime_config = AgentRuntimeConfig()
        if args.data_dir:
            runtime_config.data_dir = args.data_dir
        if args.decision_interval is not None:
            runtime_config.decision_interval = args.decision_interval
        runtime_config.validate()
    except ValueError as e:
        print(f"Error creating configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(args.log_file, args.verbose)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting {agent_config.name} as {agent_config.role.value}")

    # The other end stays open and unread so the agent keeps running
    supervisor_end, agent_end = channel_pair(multiprocessing.get_context("spawn"), "standalone", agent_config.name)
    runtime = AgentRuntime(agent_config, agent_end, runtime_config=runtime_config)

    try:
        return asyncio.run(runtime.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    finally:
        supervisor_end.close()


if __name__ == "__main__":
    sys.exit(main())
