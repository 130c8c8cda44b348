"""Entry point for ``python -m icarebridge``."""

from icarebridge.cli.commands import app

if __name__ == "__main__":
    app()
