"""Service layer for edgemap.

This module provides the core services:
- SitemapBuilder: module discovery and sitemap partitioning per worker
- SitemapPublisher: sequential build-and-upload of every configured worker
"""

from edgemap.services.builder import SitemapBuilder, WorkerBuild
from edgemap.services.publisher import RunReport, SitemapPublisher

__all__ = [
    "RunReport",
    "SitemapBuilder",
    "SitemapPublisher",
    "WorkerBuild",
]
