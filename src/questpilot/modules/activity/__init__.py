from .provider import (
    Activity,
    ActivityHost,
    ActivityProvider,
    StaticActivityProvider,
    SyntheticActivityProvider,
)
from .spoofer import ActivitySpoofer, SpoofedActivityRecord

__all__ = [
    "Activity",
    "ActivityHost",
    "ActivityProvider",
    "StaticActivityProvider",
    "SyntheticActivityProvider",
    "ActivitySpoofer",
    "SpoofedActivityRecord",
]
