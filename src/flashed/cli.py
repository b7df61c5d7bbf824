"""
Command line interface for the flashed page generation engine.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ConfigError, EngineConfig, get_secrets, load_config
from .llm import CompletionClient, build_completion_client, resolve_llm_settings
from .pipeline import GenerationPipeline, GenerationRequest, SiteSequencer, upgrade_to_site
from .publish import HttpPublisher, PublishFailure, publish_artifact
from .render import write_document, write_session
from .state import JobStatus, SEOSettings, Session, SessionStore, StateError, VersionLedger
from .storage import DraftKeeper, JsonFileStore, SessionPersistence, load_sessions, load_versions
from .util import slugify, truncate

console = Console()
app = typer.Typer(help="Generate multi-variant web pages and sites with an LLM.")
draft_app = typer.Typer(help="Inspect or discard the autosaved draft.")
app.add_typer(draft_app, name="draft")
logger = logging.getLogger(__name__)

LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]


def _configure_logging(level_name: str) -> None:
    env_override = os.getenv("FLASHED_LOG_LEVEL")
    level_str = (env_override or level_name or "info").upper()
    if level_str not in {lvl.upper() for lvl in LOG_LEVELS}:
        level_str = "INFO"
    logging.basicConfig(
        level=getattr(logging, level_str, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.debug("Logging configured at %s", level_str)


def _resolve_config_path(value: Optional[Path]) -> Optional[Path]:
    """Ensure config path exists and return absolute path."""
    if value is None:
        return None
    resolved = value.expanduser().resolve()
    if not resolved.exists():
        raise typer.BadParameter(f"No config file found at {resolved}")
    if not resolved.is_file():
        raise typer.BadParameter(f"Config path must be a file, got directory: {resolved}")
    return resolved


def _load_config_or_exit(path: Optional[Path]) -> EngineConfig:
    if path is None:
        return EngineConfig()
    try:
        return load_config(path)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise typer.Exit(code=1) from exc


CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to the configuration TOML file (defaults are used when omitted).",
    callback=_resolve_config_path,
)
LLM_OPTION = typer.Option(None, "--llm", help="Override the configured model (e.g. or:google/gemini-2.5-flash).")


@dataclass
class Workspace:
    """Store, ledger, persistence and drafts restored from the state directory."""
    config: EngineConfig
    store: SessionStore
    ledger: VersionLedger
    persistence: SessionPersistence
    drafts: DraftKeeper


def _open_workspace(config: EngineConfig) -> Workspace:
    kv = JsonFileStore(config.state_dir)
    store = SessionStore(load_sessions(kv, limit=config.max_sessions))
    ledger = VersionLedger(
        store,
        entries=load_versions(kv, limit=config.max_versions),
        max_entries=config.max_versions,
        max_undo=config.max_undo_history,
    )
    persistence = SessionPersistence(
        store,
        kv,
        ledger=ledger,
        max_sessions=config.max_sessions,
        max_versions=config.max_versions,
    )
    drafts = DraftKeeper(kv, autosave_interval=config.draft_autosave_seconds)
    drafts.attach(store)
    return Workspace(config=config, store=store, ledger=ledger, persistence=persistence, drafts=drafts)


def _build_client_or_exit(config: EngineConfig, llm: Optional[str]) -> CompletionClient:
    try:
        settings = resolve_llm_settings(config, llm)
    except RuntimeError as exc:
        console.print(f"[bold red]LLM error:[/] {exc}")
        raise typer.Exit(code=1) from exc
    logger.info("Using %s via %s", settings.model, settings.provider)
    return build_completion_client(settings)


def _read_image(path: Optional[Path]) -> Optional[str]:
    """Encode an image file as a data URL."""
    if path is None:
        return None
    resolved = path.expanduser().resolve()
    if not resolved.is_file():
        raise typer.BadParameter(f"No image found at {resolved}")
    mime_type = mimetypes.guess_type(resolved.name)[0] or "image/png"
    payload = base64.b64encode(resolved.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def _find_session(workspace: Workspace, session_id: str) -> Session:
    try:
        return workspace.store.session(session_id)
    except StateError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise typer.Exit(code=1) from exc


def _session_for_artifact(workspace: Workspace, artifact_id: str) -> Session:
    for session in workspace.store.sessions:
        if session.artifact(artifact_id) is not None:
            return session
    console.print(f"[bold red]Unknown artifact {artifact_id}[/]")
    raise typer.Exit(code=1)


_STATUS_STYLES = {
    JobStatus.COMPLETE: "green",
    JobStatus.ERROR: "red",
    JobStatus.STREAMING: "yellow",
    JobStatus.PENDING: "dim",
}


def _status_cell(status: JobStatus) -> str:
    return f"[{_STATUS_STYLES[status]}]{status.value}[/]"


def _print_session(session: Session, written: List[Path]) -> None:
    table = Table(title=f"Session {session.id}")
    table.add_column("Id")
    table.add_column("Style / Page")
    table.add_column("Status")
    table.add_column("Size", justify="right")
    for artifact in session.artifacts:
        table.add_row(artifact.id, escape(artifact.style_name), _status_cell(artifact.status), str(len(artifact.html)))
    if session.site is not None:
        for page in session.site.pages:
            name = f"{page.name} (/{page.slug})" + (" (home)" if page.is_home else "")
            table.add_row(page.id, escape(name), _status_cell(page.status), str(len(page.html)))
    console.print(table)
    if written:
        console.print(f"[bold green]Wrote {len(written)} file(s) to {written[0].parent}[/]")
    else:
        console.print("[bold yellow]No complete documents to write.[/]")


@app.callback(invoke_without_command=True)
def _root_command(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show flashed version and exit.",
        is_flag=True,
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        help="Logging level (critical, error, warning, info, debug).",
        show_default=True,
        case_sensitive=False,
    ),
) -> None:
    """
    Default command when no subcommand is selected.
    """
    _configure_logging(log_level)

    if version:
        console.print(f"[bold green]flashed[/] {__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print("[bold yellow]flashed[/] is ready. Run [cyan]flashed generate \"a coffee shop landing page\"[/].")


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="What to build."),
    config: Optional[Path] = CONFIG_OPTION,
    variants: Optional[int] = typer.Option(None, "--variants", "-n", help="Number of variants (3, 5 or 10)."),
    batch_width: Optional[int] = typer.Option(None, "--batch-width", help="Maximum jobs in flight at once."),
    image: Optional[Path] = typer.Option(None, "--image", help="Reference image for colours and tone."),
    url: Optional[str] = typer.Option(None, "--url", help="Reference URL."),
    clone: bool = typer.Option(False, "--clone", help="Replicate the reference layout (needs --url or --image)."),
    llm: Optional[str] = LLM_OPTION,
) -> None:
    """
    Generate N styled variants of a single page.
    """
    engine_config = _load_config_or_exit(config)
    overrides = {}
    if variants is not None:
        overrides["variant_count"] = variants
    if batch_width is not None:
        overrides["batch_width"] = batch_width
    if overrides:
        try:
            engine_config = EngineConfig.model_validate({**engine_config.model_dump(), **overrides})
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    if clone and not (url or image):
        raise typer.BadParameter("--clone needs --url or --image")

    workspace = _open_workspace(engine_config)
    client = _build_client_or_exit(engine_config, llm)
    pipeline = GenerationPipeline(workspace.store, client, config=engine_config)
    request = GenerationRequest(
        prompt=prompt,
        variant_count=engine_config.variant_count,
        image_data_url=_read_image(image),
        url=url,
        clone=clone,
    )
    try:
        session = asyncio.run(pipeline.generate_variants(request))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    _print_session(session, write_session(session, engine_config.output_dir))


@app.command()
def site(
    prompt: str = typer.Argument(..., help="What the site is for."),
    page: List[str] = typer.Option(None, "--page", "-p", help="Page name; repeat for more pages. First is home."),
    config: Optional[Path] = CONFIG_OPTION,
    url: Optional[str] = typer.Option(None, "--url", help="Reference URL."),
    llm: Optional[str] = LLM_OPTION,
) -> None:
    """
    Generate a multi-page site, home page first.
    """
    engine_config = _load_config_or_exit(config)
    workspace = _open_workspace(engine_config)
    client = _build_client_or_exit(engine_config, llm)
    sequencer = SiteSequencer(workspace.store, client, config=engine_config)
    try:
        session = asyncio.run(sequencer.generate_site(GenerationRequest(prompt=prompt, url=url), page or None))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    _print_session(session, write_session(session, engine_config.output_dir))


@app.command("add-page")
def add_page(
    session_id: str = typer.Argument(..., help="Site session id."),
    name: str = typer.Argument(..., help="Name of the new page."),
    config: Optional[Path] = CONFIG_OPTION,
    llm: Optional[str] = LLM_OPTION,
) -> None:
    """
    Add one page to an existing site.
    """
    engine_config = _load_config_or_exit(config)
    workspace = _open_workspace(engine_config)
    _find_session(workspace, session_id)
    client = _build_client_or_exit(engine_config, llm)
    sequencer = SiteSequencer(workspace.store, client, config=engine_config)
    try:
        new_page = asyncio.run(sequencer.add_page(session_id, name))
    except (StateError, ValueError) as exc:
        console.print(f"[bold red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    session = workspace.store.session(session_id)
    _print_session(session, write_session(session, engine_config.output_dir))
    if new_page.status is JobStatus.ERROR:
        raise typer.Exit(code=1)


@app.command()
def upgrade(
    session_id: str = typer.Argument(..., help="Session id."),
    artifact_id: str = typer.Argument(..., help="Complete artifact to use as the home page."),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """
    Turn a finished variant into a site with a single home page.
    """
    engine_config = _load_config_or_exit(config)
    workspace = _open_workspace(engine_config)
    _find_session(workspace, session_id)
    try:
        new_site = upgrade_to_site(workspace.store, session_id, artifact_id)
    except StateError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    console.print(f"[bold green]Session {session_id} is now site {new_site.id} ({new_site.name}).[/]")


@app.command()
def refine(
    session_id: str = typer.Argument(..., help="Session id."),
    artifact_id: str = typer.Argument(..., help="Artifact to refine."),
    instruction: str = typer.Argument(..., help="What to change."),
    config: Optional[Path] = CONFIG_OPTION,
    llm: Optional[str] = LLM_OPTION,
) -> None:
    """
    Apply a refinement instruction to a finished variant.
    """
    engine_config = _load_config_or_exit(config)
    workspace = _open_workspace(engine_config)
    _find_session(workspace, session_id)
    client = _build_client_or_exit(engine_config, llm)
    pipeline = GenerationPipeline(workspace.store, client, config=engine_config)
    try:
        asyncio.run(pipeline.refine_artifact(session_id, artifact_id, instruction))
    except (StateError, ValueError) as exc:
        console.print(f"[bold red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    session = workspace.store.session(session_id)
    _print_session(session, write_session(session, engine_config.output_dir))


@app.command()
def variations(
    session_id: str = typer.Argument(..., help="Session id."),
    artifact_id: str = typer.Argument(..., help="Artifact to vary."),
    config: Optional[Path] = CONFIG_OPTION,
    llm: Optional[str] = LLM_OPTION,
) -> None:
    """
    Generate alternative takes on a finished variant and write them next to the session output.
    """
    engine_config = _load_config_or_exit(config)
    workspace = _open_workspace(engine_config)
    _find_session(workspace, session_id)
    client = _build_client_or_exit(engine_config, llm)
    pipeline = GenerationPipeline(workspace.store, client, config=engine_config)
    try:
        results = asyncio.run(pipeline.generate_variations(session_id, artifact_id))
    except StateError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    if not results:
        console.print("[bold red]Failed to generate variations. Please try again.[/]")
        raise typer.Exit(code=1)
    target = Path(engine_config.output_dir) / session_id / "variations"
    for variation in results:
        path = write_document(target / f"{artifact_id}-{slugify(variation.direction)}.html", variation.html)
        console.print(f"- {variation.direction}: {path}")


@app.command()
def publish(
    session_id: str = typer.Argument(..., help="Session id."),
    artifact_id: str = typer.Argument(..., help="Complete artifact to publish."),
    title: Optional[str] = typer.Option(None, "--title", help="Page title (defaults to the prompt)."),
    description: str = typer.Option("", "--description", help="Meta description."),
    og_image: Optional[str] = typer.Option(None, "--og-image", help="Open Graph image URL."),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """
    Publish a finished variant to the configured publishing backend.
    """
    engine_config = _load_config_or_exit(config)
    if not engine_config.publish_url:
        console.print("[bold red]No publish_url configured.[/]")
        raise typer.Exit(code=1)
    workspace = _open_workspace(engine_config)
    session = _find_session(workspace, session_id)
    seo = SEOSettings(title=title or truncate(session.prompt, 60), description=description, og_image=og_image)
    publisher = HttpPublisher(engine_config.publish_url, token=get_secrets().publish_token)
    try:
        outcome = publish_artifact(workspace.store, publisher, session_id, artifact_id, seo)
    except StateError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    if isinstance(outcome, PublishFailure):
        console.print(f"[bold red]Publish failed:[/] {outcome.error}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]Published:[/] {outcome.url}")


@app.command()
def sessions(config: Optional[Path] = CONFIG_OPTION) -> None:
    """
    List stored sessions, oldest first.
    """
    engine_config = _load_config_or_exit(config)
    workspace = _open_workspace(engine_config)
    if not workspace.store.sessions:
        console.print("[yellow]No stored sessions.[/]")
        return
    table = Table(title="Sessions")
    table.add_column("Id")
    table.add_column("Created")
    table.add_column("Mode")
    table.add_column("Prompt", overflow="fold")
    table.add_column("Complete", justify="right")
    for session in workspace.store.sessions:
        if session.site is not None:
            total = len(session.site.pages)
            done = sum(1 for page in session.site.pages if page.status is JobStatus.COMPLETE)
        else:
            total = len(session.artifacts)
            done = len(session.completed_artifacts())
        table.add_row(
            session.id,
            session.created_at.strftime("%Y-%m-%d %H:%M"),
            session.mode,
            escape(truncate(session.prompt, 60, ellipsis="...")),
            f"{done}/{total}",
        )
    console.print(table)


@app.command()
def versions(
    artifact_id: str = typer.Argument(..., help="Artifact id."),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """
    Show the version history of an artifact, newest first.
    """
    engine_config = _load_config_or_exit(config)
    workspace = _open_workspace(engine_config)
    history = workspace.ledger.history(artifact_id)
    if not history:
        console.print(f"[yellow]No versions recorded for {artifact_id}.[/]")
        return
    table = Table(title=f"Versions of {artifact_id}")
    table.add_column("Id")
    table.add_column("Time")
    table.add_column("Label")
    table.add_column("Size", justify="right")
    for entry in history:
        table.add_row(entry.id, entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"), entry.label or "", str(len(entry.html)))
    console.print(table)


@app.command()
def restore(
    version_id: str = typer.Argument(..., help="Version id from `flashed versions`."),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """
    Put an earlier version back into its artifact.
    """
    engine_config = _load_config_or_exit(config)
    workspace = _open_workspace(engine_config)
    try:
        entry = workspace.ledger.entry(version_id)
    except StateError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    session = _session_for_artifact(workspace, entry.artifact_id)
    workspace.ledger.restore(session.id, entry)
    session = workspace.store.session(session.id)
    _print_session(session, write_session(session, engine_config.output_dir))


@draft_app.command("show")
def draft_show(config: Optional[Path] = CONFIG_OPTION) -> None:
    """Print the autosaved draft, if any."""
    engine_config = _load_config_or_exit(config)
    draft = DraftKeeper(JsonFileStore(engine_config.state_dir)).load()
    if draft is None:
        console.print("[yellow]No draft saved.[/]")
        return
    table = Table(title="Draft")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    table.add_row("Prompt", escape(draft.prompt))
    table.add_row("Saved", draft.timestamp.strftime("%Y-%m-%d %H:%M:%S"))
    table.add_row("Site mode", "yes" if draft.site_mode else "no")
    table.add_row("Pages", draft.page_structure or "")
    table.add_row("Image", "attached" if draft.image_data else "none")
    console.print(table)


@draft_app.command("save")
def draft_save(
    prompt: str = typer.Argument(..., help="Prompt to keep for later."),
    site_mode: bool = typer.Option(False, "--site", help="Mark the draft as a site request."),
    pages: Optional[str] = typer.Option(None, "--pages", help="Comma separated page names."),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Store a draft prompt without generating anything."""
    engine_config = _load_config_or_exit(config)
    draft = DraftKeeper(JsonFileStore(engine_config.state_dir)).save(prompt, site_mode=site_mode, page_structure=pages)
    if draft is None:
        console.print("[bold red]Draft not saved.[/]")
        raise typer.Exit(code=1)
    console.print(f"[bold green]Draft {draft.id} saved.[/]")


@draft_app.command("clear")
def draft_clear(config: Optional[Path] = CONFIG_OPTION) -> None:
    """Discard the autosaved draft."""
    engine_config = _load_config_or_exit(config)
    DraftKeeper(JsonFileStore(engine_config.state_dir)).clear()
    console.print("[green]Draft cleared.[/]")


def main() -> None:
    """
    Entry-point used by the console script defined in pyproject.toml.
    """
    app()
