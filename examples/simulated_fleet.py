"""
Run the example fleet on the simulated world for a short while.

This script demonstrates how to:
1. Seed a data directory with the example knowledge base
2. Start the supervisor with a roster file
3. Stop it after a fixed duration and inspect fleet status and learned tables
"""

import argparse
import asyncio
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path

from fleet_agent.supervisor import Supervisor, SupervisorConfig

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

EXAMPLES_DIR = Path(__file__).parent


async def run_for(supervisor: Supervisor, duration: float) -> None:
    """Stop the supervisor after duration seconds and print status first"""
    async def stop_later():
        await asyncio.sleep(duration)
        for name, status in supervisor.fleet_status().items():
            print(f"{name:>14} {status['role']:<9} alive={status['alive']} "
                  f"restarts={status['restart_count']} memory={status.get('memory_mb')}")
        supervisor.stop()

    await asyncio.gather(supervisor.run(install_signal_handlers=False), stop_later())


def main():
    parser = argparse.ArgumentParser(description="Simulated fleet demo")
    parser.add_argument("--duration", type=float, default=30.0, help="Seconds to run")
    parser.add_argument("--roster", default=str(EXAMPLES_DIR / "fleet.yaml"), help="Roster file")
    args = parser.parse_args()

    data_dir = Path(tempfile.mkdtemp(prefix="fleet_demo_"))
    (data_dir / "shared").mkdir()
    shutil.copy(EXAMPLES_DIR / "shared" / "knowledgeBase.json", data_dir / "shared" / "knowledgeBase.json")

    # Faster decisions so something happens within the demo window
    os.environ.setdefault("FLEET_DECISION_INTERVAL", "1")

    config = SupervisorConfig(
        roster_path=args.roster,
        data_dir=str(data_dir),
        log_dir=str(data_dir / "logs"),
    )
    asyncio.run(run_for(Supervisor(config), args.duration))

    print(f"\nData written to {data_dir}")
    for table in sorted((data_dir / "individual").glob("*_qtable.json")):
        states = json.loads(table.read_text())
        print(f"{table.name}: {len(states)} states")


if __name__ == "__main__":
    main()
