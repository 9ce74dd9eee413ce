"""Entry point for running lainclaw as a module."""

from lainclaw.cli.commands import app

if __name__ == "__main__":
    app()
