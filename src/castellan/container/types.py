"""Container types and enums."""

from enum import Enum, auto


class Scope(Enum):
    """Component instance scope."""

    SINGLETON = auto()
    TRANSIENT = auto()


class ComponentState(Enum):
    """Lifecycle state of a component model inside the container.

    ``UNREGISTERED -> REGISTERED -> ACTIVATING -> ACTIVE -> RELEASED``
    """

    UNREGISTERED = auto()
    REGISTERED = auto()
    ACTIVATING = auto()
    ACTIVE = auto()
    RELEASED = auto()
