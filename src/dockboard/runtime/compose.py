"""
Compose command construction for profile up/down.

Produces the argv for ``docker compose --profile <profile> <action>``; the
tracker runs it through :class:`dockboard.tracker.sources.ProcessSource`.
``up`` is detached (``-d``) so the command ends once services are started;
``down`` takes no extra flag.

Tags:
    dockboard, runtime, compose
"""

from __future__ import annotations

from dockboard.core.errors import ValidationFailed
from dockboard.core.settings import DockboardSettings
from dockboard.runtime.profiles import validate_profile

COMPOSE_ACTIONS = ("up", "down")


def validate_action(action: str) -> str:
    if action not in COMPOSE_ACTIONS:
        raise ValidationFailed(f"Invalid action '{action}'. Use \"up\" or \"down\"")
    return action


def build_compose_command(settings: DockboardSettings, profile: str, action: str) -> list[str]:
    """argv for one profile action.

    >>> build_compose_command(DockboardSettings(), "app", "up")
    ['docker', 'compose', '--profile', 'app', 'up', '-d']
    >>> build_compose_command(DockboardSettings(), "app", "down")
    ['docker', 'compose', '--profile', 'app', 'down']
    """
    validate_profile(settings, profile)
    validate_action(action)
    command = [*settings.compose_command, "--profile", profile, action]
    if action == "up":
        command.append("-d")
    return command
