"""dockboard command line (Typer + Rich)."""
