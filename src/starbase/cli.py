"""CLI entry point for starbase."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from starbase import __version__
from starbase.config import get_settings
from starbase.errors import HandTrackingInitError, StarbaseError
from starbase.gestures.camera import CameraController, CameraPose
from starbase.gestures.capture import DEFAULT_MODEL_PATH, GestureSession, HandTracker
from starbase.pipeline.fetcher import RepoFetcher, detect_source_dir
from starbase.pipeline.models import BuildOptions, GraphDocument
from starbase.pipeline.service import build_graph_document
from starbase.scanner import ScanService
from starbase.utils import redact


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose logging.")
@click.version_option(version=__version__)
def main(verbose: bool) -> None:
    """Build repository import graphs and drive the camera with your hands."""
    _setup_logging(verbose)


@main.command()
@click.option("--repo", required=True, help="Repository identifier, owner/name.")
@click.option(
    "--sparse", "sparse_dir",
    default=None,
    help="Subdirectory to graph (default from settings, 'auto' to detect).",
)
@click.option(
    "--mode",
    type=click.Choice(["directory", "file"], case_sensitive=False),
    default="directory",
    help="Resolution recorded in meta.mode (default: directory).",
)
@click.option("--max", "max_files", type=click.IntRange(min=1), default=None,
              help="Node cap for the file view.")
@click.option(
    "-o", "--out",
    default="public/repo-graph.json",
    help="Output file path, or '-' for stdout.",
)
@click.option("--token", envvar="GITHUB_TOKEN", default=None,
              help="Access token for private repositories (env: GITHUB_TOKEN).")
@click.option(
    "--path", "local_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=None,
    help="Graph a local source tree instead of fetching the repository.",
)
def build(
    repo: str,
    sparse_dir: str | None,
    mode: str,
    max_files: int | None,
    out: str,
    token: str | None,
    local_path: str | None,
) -> None:
    """Fetch a repository and write its import graph JSON."""
    settings = get_settings()
    sparse_dir = sparse_dir or settings.default_sparse_dir

    try:
        if sparse_dir == "auto":
            dirs = asyncio.run(RepoFetcher(settings).top_level_dirs(repo, token))
            sparse_dir = detect_source_dir(dirs, settings.default_sparse_dir)
            click.echo(f"Detected source directory: {sparse_dir}", err=True)

        options = BuildOptions(
            repo=repo,
            sparse_dir=sparse_dir,
            mode=mode.lower(),
            max_files=max_files or settings.max_files,
            token=token,
        )
        if local_path:
            doc = asyncio.run(build_graph_document(
                Path(local_path), options, concurrency=settings.resolve_concurrency,
            ))
        else:
            doc = asyncio.run(ScanService(settings).scan(options))
    except StarbaseError as exc:
        raise click.ClickException(redact(str(exc), token)) from None

    _write_document(doc, out)


def _write_document(doc: GraphDocument, out: str) -> None:
    text = json.dumps(doc.to_json_dict(), indent=2)
    if out == "-":
        click.echo(text)
        return
    dest = Path(out)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(text)
    click.echo(f"Wrote {dest}", err=True)
    click.echo(f"  {len(doc.nodes)} dir nodes, {len(doc.links)} dir links", err=True)
    click.echo(f"  {len(doc.file_nodes)} file nodes, {len(doc.file_links)} file links", err=True)


@main.command("detect-src")
@click.option("--repo", required=True, help="Repository identifier, owner/name.")
@click.option("--token", envvar="GITHUB_TOKEN", default=None,
              help="Access token for private repositories (env: GITHUB_TOKEN).")
def detect_src(repo: str, token: str | None) -> None:
    """Print the detected source directory and the top-level directories."""
    settings = get_settings()
    try:
        dirs = asyncio.run(RepoFetcher(settings).top_level_dirs(repo, token))
    except StarbaseError as exc:
        raise click.ClickException(redact(str(exc), token)) from None
    click.echo(json.dumps({
        "sparseDir": detect_source_dir(dirs, settings.default_sparse_dir),
        "dirs": dirs,
    }, indent=2))


class _EchoListener:
    """Prints renderer hooks as JSON lines alongside the poses."""

    def set_orbit_controls(self, enabled: bool, auto_rotate: bool) -> None:
        click.echo(json.dumps({"orbitControls": {"enabled": enabled, "autoRotate": auto_rotate}}))

    def fly_to(self, pose: CameraPose) -> None:
        click.echo(json.dumps({"flyTo": pose.to_dict()}))


@main.command()
@click.option("--camera", "camera_index", type=int, default=0, help="Webcam index.")
@click.option(
    "--model",
    type=click.Path(dir_okay=False),
    default=str(DEFAULT_MODEL_PATH),
    help="MediaPipe hand_landmarker.task model file.",
)
@click.option("--fps", type=click.FloatRange(min=1.0), default=60.0, help="Camera update rate.")
def gestures(camera_index: int, model: str, fps: float) -> None:
    """Run two-handed camera control, printing poses and orbit-control changes as JSON lines."""
    controller = CameraController(listener=_EchoListener())
    session = GestureSession(
        controller,
        tracker_factory=lambda: HandTracker(camera_index=camera_index, model_path=model),
        fps=fps,
    )

    def _emit(pose: CameraPose) -> None:
        click.echo(json.dumps(pose.to_dict()))

    try:
        asyncio.run(session.run(on_pose=_emit))
    except HandTrackingInitError as exc:
        raise click.ClickException(str(exc)) from None
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
