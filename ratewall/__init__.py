"""Rate limiting and IP access control for the proxy API host."""

from .config import Settings, get_settings
from .gate import RequestGate
from .logging_config import configure_logging
from .policy import AdmissionPolicy, Decision, Outcome
from .rate_limit import SlidingWindow
from .store import AccessStore

__all__ = [
    "AccessStore",
    "AdmissionPolicy",
    "Decision",
    "Outcome",
    "RequestGate",
    "Settings",
    "SlidingWindow",
    "configure_logging",
    "get_settings",
]
