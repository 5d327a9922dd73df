"""Fallback entrypoint for `python -m lingobus`.

Routes to the lingobus_cli Typer application.
"""

from lingobus_cli.main import app

if __name__ == "__main__":
    app()
