"""Collapse per-file import edges into the directory view and the file view."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from pathlib import Path

from starbase.pipeline.categories import assign_category
from starbase.pipeline.models import GraphLink, GraphNode

log = logging.getLogger(__name__)

ROOT_KEY = "."
DIR_KEY_DEPTH = 2


def rel_id(path: Path, src_root: Path) -> str:
    return path.relative_to(src_root).as_posix()


def dir_key(path: Path, src_root: Path) -> str:
    """First two directory segments of path under src_root, or "." at the root."""
    parts = path.parent.relative_to(src_root).parts
    return "/".join(parts[:DIR_KEY_DEPTH]) or ROOT_KEY


def _pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


def build_directory_graph(
    files: list[Path],
    file_imports: dict[Path, set[Path]],
    src_root: Path,
) -> tuple[list[GraphNode], list[GraphLink]]:
    """One node per directory key, one link per cross-directory unordered pair."""
    file_counts: Counter[str] = Counter(dir_key(f, src_root) for f in files)

    pairs: set[tuple[str, str]] = set()
    for source, imports in file_imports.items():
        from_dir = dir_key(source, src_root)
        for target in imports:
            to_dir = dir_key(target, src_root)
            if from_dir != to_dir:
                pairs.add(_pair(from_dir, to_dir))

    root_label = f"{src_root.name or 'src'} (root)"
    nodes = [
        GraphNode(
            id=key,
            label=root_label if key == ROOT_KEY else key.rsplit("/", 1)[-1],
            category=assign_category(key + "/").value,
            file_count=count,
            kind="directory",
        )
        for key, count in sorted(file_counts.items())
    ]
    links = [GraphLink(source=a, target=b) for a, b in sorted(pairs)]
    return nodes, links


def connectivity(file_imports: dict[Path, set[Path]]) -> Counter[Path]:
    """Out-degree plus in-degree for every file that takes part in an edge."""
    counts: Counter[Path] = Counter()
    for source, imports in file_imports.items():
        counts[source] += len(imports)
        for target in imports:
            counts[target] += 1
    return counts


def build_file_graph(
    file_imports: dict[Path, set[Path]],
    src_root: Path,
    max_files: int,
) -> tuple[list[GraphNode], list[GraphLink]]:
    """Top max_files files by connectivity and the links among them.

    Edges touching a dropped file are discarded, not rerouted. Ties are
    broken by relative path so a run is deterministic.
    """
    counts = connectivity(file_imports)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], rel_id(item[0], src_root)))
    kept = [path for path, _ in ranked[:max_files]]
    kept_set = set(kept)
    if len(ranked) > max_files:
        log.info("File view capped at %d of %d connected files", max_files, len(ranked))

    nodes = []
    for path in kept:
        rid = rel_id(path, src_root)
        nodes.append(GraphNode(
            id=rid,
            label=path.stem,
            category=assign_category(rid).value,
            file_count=1,
            kind="file",
        ))

    seen: set[tuple[str, str]] = set()
    links: list[GraphLink] = []
    for source in kept:
        for target in file_imports.get(source, ()):
            if target not in kept_set or target == source:
                continue
            from_id, to_id = rel_id(source, src_root), rel_id(target, src_root)
            key = _pair(from_id, to_id)
            if key in seen:
                continue
            seen.add(key)
            links.append(GraphLink(source=from_id, target=to_id))
    return nodes, links


def file_to_dir_map(files: list[Path], src_root: Path) -> dict[str, str]:
    return {rel_id(f, src_root): dir_key(f, src_root) for f in sorted(files)}


def connection_counts(links: list[GraphLink]) -> dict[str, int]:
    """Degree of each node id over a link list (the renderer's ``connections``)."""
    degree: dict[str, int] = defaultdict(int)
    for link in links:
        degree[link.source] += 1
        degree[link.target] += 1
    return dict(degree)
