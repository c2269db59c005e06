"""
Configuration for the supervisor process.

All settings default from environment variables and can be overridden by
the command line flags of scripts/run_supervisor.py.
"""

import os
from dataclasses import dataclass, field


@dataclass
class SupervisorConfig:
    """Configuration for the fleet supervisor"""

    # Files
    roster_path: str = field(default_factory=lambda: os.getenv('FLEET_ROSTER', 'shared/botsConfig.json'))
    data_dir: str = field(default_factory=lambda: os.getenv('FLEET_DATA_DIR', 'fleet_data'))
    log_dir: str = field(default_factory=lambda: os.getenv('FLEET_LOG_DIR', 'logs'))

    # Lifecycle timings (seconds)
    respawn_delay: float = field(default_factory=lambda: float(os.getenv('FLEET_RESPAWN_DELAY', '10')))
    keepalive_interval: float = field(default_factory=lambda: float(os.getenv('FLEET_KEEPALIVE_INTERVAL', '5')))
    poll_interval: float = field(default_factory=lambda: float(os.getenv('FLEET_POLL_INTERVAL', '0.2')))
    shutdown_timeout: float = field(default_factory=lambda: float(os.getenv('FLEET_SHUTDOWN_TIMEOUT', '10')))

    verbose: bool = field(default_factory=lambda: os.getenv('VERBOSE', 'false').lower() == 'true')

    def validate(self):
        """Validate configuration"""
        if self.respawn_delay < 0:
            raise ValueError(f"respawn_delay must be >= 0, got {self.respawn_delay}")

        for name in ("keepalive_interval", "poll_interval", "shutdown_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")

        if not self.data_dir:
            raise ValueError("data_dir must not be empty")

    def __post_init__(self):
        """Post-initialization validation"""
        self.validate()
