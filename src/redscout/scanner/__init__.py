from .logs import WorkingLog
from .orchestrator import Scanner
from .poller import InfoPoller
from .records import OpRecord, ScanRecord, parse_monitor_line
from .state import Phase, PublishQueue, State, StateSnapshot

__all__ = [
    "Scanner",
    "State",
    "StateSnapshot",
    "Phase",
    "PublishQueue",
    "InfoPoller",
    "WorkingLog",
    "ScanRecord",
    "OpRecord",
    "parse_monitor_line",
]
