"""Node categories: closed enumeration, display colors, path heuristic."""

from __future__ import annotations

from enum import Enum

from starbase.pipeline.models import CategoryInfo


class Category(str, Enum):
    SERVER = "server"
    CLIENT = "client"
    SHARED = "shared"
    LIB = "lib"
    BUILD = "build"
    API = "api"
    PAGES = "pages"
    EXPORT = "export"
    OTHER = "other"


CATEGORY_INFO: dict[Category, CategoryInfo] = {
    Category.SERVER: CategoryInfo(color="#50c8dc", label="Server"),
    Category.CLIENT: CategoryInfo(color="#a078ff", label="Client"),
    Category.SHARED: CategoryInfo(color="#64dca0", label="Shared"),
    Category.LIB: CategoryInfo(color="#ffb446", label="Lib"),
    Category.BUILD: CategoryInfo(color="#ff6478", label="Build"),
    Category.API: CategoryInfo(color="#dc82dc", label="API"),
    Category.PAGES: CategoryInfo(color="#88ccff", label="Pages"),
    Category.EXPORT: CategoryInfo(color="#ffd866", label="Export"),
    Category.OTHER: CategoryInfo(color="#999999", label="Other"),
}

# Checked in order; first match wins.
# (category, segments matching as first segment or "/<seg>/", extra substrings)
_RULES: list[tuple[Category, tuple[str, ...], tuple[str, ...]]] = [
    (Category.SERVER, ("server",), ()),
    (Category.CLIENT, ("client",), ()),
    (Category.SHARED, ("shared",), ()),
    (Category.LIB, ("lib",), ()),
    (Category.BUILD, ("build", "compiler"), ("/trace/",)),
    (Category.API, ("api",), ()),
    (Category.PAGES, ("pages",), ()),
    (Category.EXPORT, ("export",), ()),
]


def assign_category(rel_path: str) -> Category:
    """Assign a category from a POSIX path relative to the source root.

    Directory keys should be passed with a trailing slash so their last
    segment is matched as a directory.
    """
    p = rel_path.lower()
    first = p.split("/")[0]
    for category, segments, extras in _RULES:
        if first in segments:
            return category
        if any(f"/{seg}/" in p for seg in segments):
            return category
        if any(extra in p for extra in extras):
            return category
    return Category.OTHER


def categories_for(used: set[str]) -> dict[str, CategoryInfo]:
    """Color/label table restricted to the categories actually used."""
    table: dict[str, CategoryInfo] = {}
    for category in Category:
        if category.value in used:
            table[category.value] = CATEGORY_INFO[category]
    return table
