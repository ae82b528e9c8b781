"""Command-line interface for edgemap.

This package provides the CLI commands for edgemap. Commands are organized
into modules by functionality:

- build: Configuration checks and local sitemap generation (validate, generate)
- publish: Building and uploading worker scripts (upload, upload-file)
"""

# Import all command modules to register them with the app
from edgemap.cli import (
    build,  # noqa: F401
    publish,  # noqa: F401
)
from edgemap.cli._common import app

__all__ = ["app"]
