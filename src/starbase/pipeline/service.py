"""
Starbase graph build for a source tree already on disk.

Usage:
    from pathlib import Path
    from starbase.pipeline.models import BuildOptions
    from starbase.pipeline.service import build_graph_document

    doc = await build_graph_document(
        Path("/path/to/checkout/src"),
        BuildOptions(repo="owner/name", sparseDir="src"),
    )

    # doc.nodes, doc.links            directory view
    # doc.file_nodes, doc.file_links  top-N file view
    # doc.to_json_dict()              camelCase JSON document
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from starbase.pipeline.categories import categories_for
from starbase.pipeline.imports_scan import resolve_all
from starbase.pipeline.models import BuildOptions, GraphDocument, GraphMeta
from starbase.pipeline.reducer import (
    build_directory_graph,
    build_file_graph,
    file_to_dir_map,
)
from starbase.utils import discover_files

log = logging.getLogger(__name__)


async def build_graph_document(
    src_root: Path,
    options: BuildOptions,
    *,
    concurrency: int = 8,
) -> GraphDocument:
    """Walk src_root, resolve imports, and reduce to both graph views.

    Args:
        src_root: Directory holding the sources to graph.
        options: Build options (repo name and path prefix go into meta).
        concurrency: Maximum files resolved at once.

    Returns:
        GraphDocument with directory view, file view and file→directory map.
    """
    src_root = src_root.resolve()

    # ── Walk ────────────────────────────────────────────────────────────
    log.info("Walking %s", src_root)
    files = await asyncio.to_thread(discover_files, src_root)
    log.info("Found %d source files", len(files))

    # ── Resolve ─────────────────────────────────────────────────────────
    file_imports = await resolve_all(files, concurrency=concurrency)
    log.info(
        "Parsed %d resolved imports from %d files",
        sum(len(v) for v in file_imports.values()), len(file_imports),
    )

    # ── Reduce ──────────────────────────────────────────────────────────
    nodes, links = build_directory_graph(files, file_imports, src_root)
    file_nodes, file_links = build_file_graph(file_imports, src_root, options.max_files)

    used = {n.category for n in nodes} | {n.category for n in file_nodes}
    return GraphDocument(
        meta=GraphMeta(
            repo=options.repo,
            mode=options.mode,
            path_prefix=options.sparse_dir,
            node_count=len(nodes),
            link_count=len(links),
        ),
        categories=categories_for(used),
        nodes=nodes,
        links=links,
        file_nodes=file_nodes,
        file_links=file_links,
        file_to_dir_map=file_to_dir_map(files, src_root),
    )
