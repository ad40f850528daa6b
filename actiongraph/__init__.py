"""Discover, resolve and report GitHub Actions dependencies."""

from __future__ import annotations

from .assembler import GraphAssembler, assemble
from .crawler import ManifestCrawler, crawl
from .references import classify
from .resolver import IdentityResolver, resolve

__version__ = "0.1.0"

__all__ = [
    "GraphAssembler",
    "IdentityResolver",
    "ManifestCrawler",
    "assemble",
    "classify",
    "crawl",
    "resolve",
]
