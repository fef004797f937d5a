"""Pydantic models for the graph document and build options."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

NodeKind = Literal["directory", "file"]
GraphMode = Literal["directory", "file"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ── Graph elements ─────────────────────────────────────────────────────────

class GraphNode(_CamelModel):
    id: str                 # directory key ("server/app") or file path ("server/app/render.ts")
    label: str
    category: str
    file_count: int = Field(default=1, alias="fileCount", ge=1)
    kind: NodeKind = Field(default="file", exclude=True)


class GraphLink(_CamelModel):
    source: str
    target: str


class CategoryInfo(_CamelModel):
    color: str              # "#rrggbb"
    label: str


class GraphMeta(_CamelModel):
    repo: str
    mode: GraphMode = "directory"
    path_prefix: str = Field(default="", alias="pathPrefix")
    node_count: int = Field(default=0, alias="nodeCount")
    link_count: int = Field(default=0, alias="linkCount")


# ── Document ───────────────────────────────────────────────────────────────

class GraphDocument(_CamelModel):
    """Single immutable artifact produced by one build run."""
    meta: GraphMeta
    categories: dict[str, CategoryInfo] = Field(default_factory=dict)
    nodes: list[GraphNode] = Field(default_factory=list)
    links: list[GraphLink] = Field(default_factory=list)
    file_nodes: list[GraphNode] = Field(default_factory=list, alias="fileNodes")
    file_links: list[GraphLink] = Field(default_factory=list, alias="fileLinks")
    file_to_dir_map: dict[str, str] = Field(default_factory=dict, alias="fileToDirMap")

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


# ── Build invocation ───────────────────────────────────────────────────────

class BuildOptions(_CamelModel):
    repo: str
    sparse_dir: str = Field(default="src", alias="sparseDir")
    mode: GraphMode = "directory"
    max_files: int = Field(default=600, alias="maxFiles", ge=1)
    token: str | None = Field(default=None, repr=False, exclude=True)

    @property
    def job_key(self) -> str:
        return f"{self.repo}:{self.sparse_dir}"
