"""Fallback entrypoint for `python -m viscomp`.

Routes to the viscomp_cli Typer application.
"""

from viscomp_cli.main import app

if __name__ == "__main__":
    app()
