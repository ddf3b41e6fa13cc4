"""Past Forward - Generate yourself through the decades."""

__version__ = "0.1.0"

from pastforward.core.config import PastForwardConfig, config
from pastforward.core.session import PastForwardSession

__all__ = [
    "PastForwardConfig",
    "PastForwardSession",
    "config",
]
