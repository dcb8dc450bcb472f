"""Registry of `on` trigger factories."""

from typing import Callable
from .factories import (
    create_hover_trigger,
    create_idle_trigger,
    create_immediate_trigger,
    create_interaction_trigger,
    create_never_trigger,
    create_timer_trigger,
    create_viewport_trigger,
)


TRIGGER_REGISTRY: dict[str, Callable] = {
    "idle": create_idle_trigger,
    "timer": create_timer_trigger,
    "interaction": create_interaction_trigger,
    "immediate": create_immediate_trigger,
    "hover": create_hover_trigger,
    "viewport": create_viewport_trigger,
    "never": create_never_trigger,
}


def get_trigger_factory(name: str) -> Callable | None:
    """Get a trigger factory by trigger name."""
    return TRIGGER_REGISTRY.get(name)


def register_trigger(name: str, factory: Callable) -> None:
    """Register a new trigger factory."""
    TRIGGER_REGISTRY[name] = factory


def list_triggers() -> list[str]:
    """List all registered trigger names."""
    return list(TRIGGER_REGISTRY.keys())
