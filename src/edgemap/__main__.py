"""Allow running as ``python -m edgemap``."""

from edgemap.cli import app

if __name__ == "__main__":
    app()
