"""twitchmod Modes"""

from .inspector_form import InspectorForm, InspectorUI
from .moderator import (
    ActionError,
    HeldMessageQueue,
    RaidTracker,
    TwitchModPlugin,
)

__all__ = [
    # Property Inspector
    "InspectorForm",
    "InspectorUI",
    # Plugin
    "TwitchModPlugin",
    "RaidTracker",
    "HeldMessageQueue",
    "ActionError",
]
