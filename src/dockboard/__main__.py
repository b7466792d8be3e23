from dockboard.cli.app import app

app()
