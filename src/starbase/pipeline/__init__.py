"""Import-graph extraction pipeline.

Provides:
    build_graph_document(src_root, options) -> GraphDocument
    RepoFetcher(settings).fetch(repo, sparse_dir, token) -> Path
"""

from __future__ import annotations

from starbase.pipeline.fetcher import RepoFetcher, detect_source_dir
from starbase.pipeline.models import BuildOptions, GraphDocument
from starbase.pipeline.service import build_graph_document

__all__ = [
    "BuildOptions",
    "GraphDocument",
    "RepoFetcher",
    "build_graph_document",
    "detect_source_dir",
]
