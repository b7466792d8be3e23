"""
Container-runtime collaborators: Engine API client, compose commands,
stats math, profile filters and project config files.

Tags:
    dockboard, runtime
"""

from dockboard.runtime.client import EngineClient, demux_logs, split_image_reference
from dockboard.runtime.compose import COMPOSE_ACTIONS, build_compose_command
from dockboard.runtime.profiles import (
    container_details,
    container_summary,
    filter_by_profile,
    image_summary,
    volume_summary,
)
from dockboard.runtime.stats import aggregate_stats, summarize_stats

__all__ = [
    "COMPOSE_ACTIONS",
    "EngineClient",
    "aggregate_stats",
    "build_compose_command",
    "container_details",
    "container_summary",
    "demux_logs",
    "filter_by_profile",
    "image_summary",
    "split_image_reference",
    "summarize_stats",
    "volume_summary",
]
