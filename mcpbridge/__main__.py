"""Allow ``python -m mcpbridge``."""

from mcpbridge.cli.commands import app

if __name__ == "__main__":
    app()
