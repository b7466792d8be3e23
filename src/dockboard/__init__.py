"""
dockboard - container dashboard with tracked long-running operations.

Lists, inspects and controls containers, images and volumes of a Docker
Engine, and runs ``docker compose`` profiles up/down. Image pulls and
compose runs are tracked by :mod:`dockboard.tracker` so any client can poll,
stream or cancel them.
"""

__version__ = "1.0.0"
