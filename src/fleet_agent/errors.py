"""
Error taxonomy for the fleet.

Every failure in the fleet is logged and absorbed at a well-defined seam;
these exceptions mark which seam a failure belongs to.
"""


class FleetError(Exception):
    """Base class for all fleet errors"""


class ConfigurationError(FleetError):
    """Missing or invalid roster / configuration document"""


class PersistenceError(FleetError):
    """Unreadable, corrupt or unwritable table or knowledge file"""

    def __init__(self, path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class WorldInteractionError(FleetError):
    """A world-agent operation (travel, dig, place, craft, equip) failed"""


class PathTimeoutError(WorldInteractionError):
    """Path-finding did not reach its goal within the allotted time"""


class ProcessError(FleetError):
    """An agent process could not be started or exited unexpectedly"""


class AgentBusyError(FleetError):
    """Raised when a multi-step task is started while another one is executing"""
