"""
SectionForge Command Line Interface.

This module provides the CLI entry point for generating sectioned reports.
"""

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from sectionforge.version import __version__

console = Console()

_STATUS_STYLES = {
    "pending": "dim",
    "generating": "cyan",
    "completed": "green",
    "failed": "red",
    "generated": "green",
    "compiled": "bold green",
}


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


def configure_logging(logging_config, verbose: bool = False, debug: bool = False) -> None:
    """Configure sectionforge loggers from the logging settings.

    Console logs stay at WARNING unless verbose output is requested.
    """
    level = logging_config.level.to_logging() if verbose else max(
        logging.WARNING, logging_config.level.to_logging()
    )
    if debug:
        level = logging.DEBUG

    if logging_config.rich:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handlers = [handler]

    if logging_config.file:
        file_handler = logging.FileHandler(logging_config.file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers)
    logging.getLogger("sectionforge").setLevel(level)


def _load_settings(config_path: str | None):
    """Load configuration or exit with an error."""
    from sectionforge.config import ConfigurationError, load_config, load_config_from_env

    try:
        cfg = load_config(config_path) if config_path else load_config_from_env()
    except (ConfigurationError, FileNotFoundError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    if cfg.catalog.path:
        from sectionforge.catalog import get_registry

        try:
            get_registry().load_yaml(cfg.catalog.path)
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]Catalog error:[/red] {e}")
            sys.exit(1)
    return cfg


def _make_history(cfg, history_dir: str | None = None):
    from sectionforge.config import HistoryBackend
    from sectionforge.history import create_history_store

    history_cfg = cfg.history
    if history_dir:
        history_cfg = history_cfg.model_copy(
            update={"directory": history_dir, "backend": HistoryBackend.FILE}
        )
    return create_history_store(history_cfg)


def _make_service(ctx: click.Context, cfg):
    """Service from an injected factory, else the OpenRouter service."""
    factory = (ctx.obj or {}).get("service_factory")
    if factory is not None:
        return factory(cfg)

    from sectionforge.service import OpenRouterSectionService

    return OpenRouterSectionService.from_config(cfg.service)


def _require_api_key(ctx: click.Context) -> None:
    if (ctx.obj or {}).get("service_factory") is not None:
        return

    from sectionforge.config import get_api_key

    if not get_api_key():
        console.print("[red]Error:[/red] OPENROUTER_API_KEY is not set.")
        console.print("[dim]Set it in the environment or in a .env file.[/dim]")
        sys.exit(1)


def _get_template(template_id: str):
    from sectionforge.catalog import UnknownTemplateError, get_template

    try:
        return get_template(template_id)
    except UnknownTemplateError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _make_orchestrator(ctx: click.Context, cfg, template, history, output: str | None = None):
    from sectionforge.assembly import HtmlDocumentCompiler
    from sectionforge.orchestrator import SectionOrchestrator

    compiler = HtmlDocumentCompiler(
        output or cfg.output.base_dir,
        create_dirs=cfg.output.create_dirs,
    )
    return SectionOrchestrator(
        template,
        _make_service(ctx, cfg),
        history,
        compiler=compiler,
        config=cfg.generation,
    )


@click.group()
@click.version_option(version=__version__, prog_name="sectionforge")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """SectionForge: Sectioned report generation.

    Generate multi-section reports one section at a time, in batches,
    with automatic retries and partial-failure tolerance.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command()
@click.argument("template_id")
@click.option(
    "--section",
    "-s",
    "sections",
    multiple=True,
    help="Section id to generate (repeatable). Defaults to high-priority sections.",
)
@click.option("--all", "all_sections", is_flag=True, help="Generate every section of the template")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.option("--batch-size", type=int, default=None, help="Sections generated concurrently")
@click.option("--history-dir", type=click.Path(), default=None, help="Run history directory")
@click.option("--output", "-o", type=click.Path(), default=None, help="Output directory for reports")
@click.option("--no-compile", is_flag=True, help="Skip compiling the HTML report")
@click.option("--company", default=None, help="Company the report is prepared for")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def generate(
    ctx: click.Context,
    template_id: str,
    sections: tuple[str, ...],
    all_sections: bool,
    config: str | None,
    batch_size: int | None,
    history_dir: str | None,
    output: str | None,
    no_compile: bool,
    company: str | None,
    verbose: bool,
) -> None:
    """Generate a report from a template.

    TEMPLATE_ID is the template to use (see `sectionforge templates`).
    """
    verbose = verbose or ctx.obj.get("verbose", False)
    cfg = _load_settings(config)
    configure_logging(cfg.logging, verbose=verbose, debug=cfg.debug)

    if batch_size is not None:
        if batch_size < 1:
            console.print("[red]Error:[/red] --batch-size must be at least 1")
            sys.exit(1)
        cfg.generation.batch_size = batch_size

    template = _get_template(template_id)
    if all_sections:
        selected = template.section_ids
    elif sections:
        selected = list(sections)
    else:
        selected = template.high_priority_section_ids()

    _require_api_key(ctx)

    console.print(
        Panel(
            f"[bold blue]SectionForge v{__version__}[/bold blue]\n{template.name}",
            title="SectionForge",
        )
    )
    config_table = Table(show_header=False, box=None)
    config_table.add_column("Setting", style="cyan")
    config_table.add_column("Value", style="green")
    config_table.add_row("Template", template.id)
    config_table.add_row("Sections", str(len(selected)))
    config_table.add_row("Batch Size", str(cfg.generation.batch_size))
    config_table.add_row("Max Retries", str(cfg.generation.max_retries))
    config_table.add_row("Output", output or cfg.output.base_dir)
    if config:
        config_table.add_row("Config File", config)
    console.print(config_table)
    console.print()

    context = {"requester": {"company": company}} if company else None
    history = _make_history(cfg, history_dir)

    from sectionforge.models import RunStatus
    from sectionforge.orchestrator import OrchestratorError

    try:
        run = run_async(
            _run_generation(ctx, cfg, template, history, output, selected, context, not no_compile)
        )
    except OrchestratorError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    _display_run_summary(run)
    if run.status == RunStatus.FAILED:
        sys.exit(1)


async def _run_generation(ctx, cfg, template, history, output, selected, context, compile_report):
    orchestrator = _make_orchestrator(ctx, cfg, template, history, output)
    service = orchestrator.service
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Initializing...", total=len(selected))

            def on_progress(report) -> None:
                progress.update(
                    task,
                    completed=report.aggregate.done,
                    description=report.phase,
                )

            orchestrator.on_progress(on_progress)
            run_id = await orchestrator.start_run(selected, context=context)
            await orchestrator.wait_for_run(run_id)

        if compile_report:
            await _compile_and_report(orchestrator, run_id)
        return orchestrator.get_run_status(run_id)
    finally:
        await service.close()


async def _compile_and_report(orchestrator, run_id: str) -> None:
    from sectionforge.assembly import CompilationError

    try:
        artifact = await orchestrator.compile(run_id)
    except CompilationError as e:
        console.print(f"[yellow]Report not compiled:[/yellow] {e}")
        return
    suffix = " (partial)" if artifact.is_partially_complete else ""
    console.print(
        f"[green]Report saved to:[/green] {artifact.path} "
        f"({artifact.section_count} sections{suffix})"
    )


def _display_run_summary(report) -> None:
    """Display a summary of a run."""
    console.print()
    style = _STATUS_STYLES.get(report.status.value, "white")
    console.print(
        Panel(
            f"[{style}]{report.status.value.upper()}[/{style}]  {report.phase}",
            title=f"Run {report.run_id}",
        )
    )

    sections_table = Table(title="Sections", show_header=True)
    sections_table.add_column("Section", style="cyan")
    sections_table.add_column("Status")
    sections_table.add_column("Progress", justify="right")
    sections_table.add_column("Retries", justify="right")
    sections_table.add_column("Error", style="red")
    for state in report.sections:
        state_style = _STATUS_STYLES.get(state.status.value, "white")
        sections_table.add_row(
            state.title or state.section_id,
            f"[{state_style}]{state.status.value}[/{state_style}]",
            f"{state.progress_percent}%",
            str(state.retry_count),
            state.error or "",
        )
    console.print(sections_table)

    counts = report.aggregate
    summary_table = Table(show_header=False, box=None)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")
    summary_table.add_row("Completed", f"{counts.completed}/{counts.total}")
    summary_table.add_row("Failed", str(counts.failed))
    if report.is_partially_complete:
        summary_table.add_row("Partial", "[yellow]Yes[/yellow]")
    summary_table.add_row("Compiled", "Yes" if report.compiled else "No")
    if report.error:
        summary_table.add_row("Error", f"[red]{report.error}[/red]")
    console.print(summary_table)

    if counts.failed:
        console.print(
            f"[dim]Retry failed sections with: sectionforge retry {report.run_id}[/dim]"
        )


@main.command()
@click.argument("run_id")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--history-dir", type=click.Path(), default=None, help="Run history directory")
def status(run_id: str, config: str | None, history_dir: str | None) -> None:
    """Show the status of a run."""
    from sectionforge.models import RunStatusReport

    cfg = _load_settings(config)
    history = _make_history(cfg, history_dir)
    run = history.get(run_id)
    if run is None:
        console.print(f"[red]Error:[/red] Run not found: {run_id}")
        sys.exit(1)
    _display_run_summary(RunStatusReport.from_run(run))


def _continue_run(ctx, run_id, config, history_dir, output, compile_report, action: str) -> None:
    """Shared flow of the retry and resume commands."""
    from sectionforge.orchestrator import OrchestratorError

    verbose = ctx.obj.get("verbose", False)
    cfg = _load_settings(config)
    configure_logging(cfg.logging, verbose=verbose, debug=cfg.debug)
    history = _make_history(cfg, history_dir)

    stored = history.get(run_id)
    if stored is None:
        console.print(f"[red]Error:[/red] Run not found: {run_id}")
        sys.exit(1)
    template = _get_template(stored.template_id)
    _require_api_key(ctx)

    async def _run():
        orchestrator = _make_orchestrator(ctx, cfg, template, history, output)
        try:
            if action == "retry":
                section_ids = await orchestrator.retry_failed(run_id)
            else:
                section_ids = await orchestrator.resume_run(run_id)
            if section_ids:
                console.print(
                    f"[cyan]{action.capitalize()}:[/cyan] {', '.join(section_ids)}"
                )
                with console.status(f"Generating {len(section_ids)} sections..."):
                    await orchestrator.wait_for_run(run_id)
            else:
                console.print(f"[dim]Nothing to {action}.[/dim]")
            if compile_report and section_ids:
                await _compile_and_report(orchestrator, run_id)
            return orchestrator.get_run_status(run_id)
        finally:
            await orchestrator.service.close()

    try:
        report = run_async(_run())
    except OrchestratorError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    _display_run_summary(report)


@main.command()
@click.argument("run_id")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--history-dir", type=click.Path(), default=None, help="Run history directory")
@click.option("--output", "-o", type=click.Path(), default=None, help="Output directory for reports")
@click.option("--no-compile", is_flag=True, help="Skip compiling the HTML report")
@click.pass_context
def retry(
    ctx: click.Context,
    run_id: str,
    config: str | None,
    history_dir: str | None,
    output: str | None,
    no_compile: bool,
) -> None:
    """Retry the failed sections of a run."""
    _continue_run(ctx, run_id, config, history_dir, output, not no_compile, "retry")


@main.command()
@click.argument("run_id")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--history-dir", type=click.Path(), default=None, help="Run history directory")
@click.option("--output", "-o", type=click.Path(), default=None, help="Output directory for reports")
@click.option("--no-compile", is_flag=True, help="Skip compiling the HTML report")
@click.pass_context
def resume(
    ctx: click.Context,
    run_id: str,
    config: str | None,
    history_dir: str | None,
    output: str | None,
    no_compile: bool,
) -> None:
    """Resume an interrupted run from its last snapshot."""
    _continue_run(ctx, run_id, config, history_dir, output, not no_compile, "resume")


@main.command(name="compile")
@click.argument("run_id")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--history-dir", type=click.Path(), default=None, help="Run history directory")
@click.option("--output", "-o", type=click.Path(), default=None, help="Output directory for reports")
@click.pass_context
def compile_command(
    ctx: click.Context,
    run_id: str,
    config: str | None,
    history_dir: str | None,
    output: str | None,
) -> None:
    """Compile the completed sections of a run into an HTML report."""
    from sectionforge.assembly import CompilationError

    cfg = _load_settings(config)
    history = _make_history(cfg, history_dir)
    stored = history.get(run_id)
    if stored is None:
        console.print(f"[red]Error:[/red] Run not found: {run_id}")
        sys.exit(1)
    template = _get_template(stored.template_id)

    async def _run():
        orchestrator = _make_orchestrator(ctx, cfg, template, history, output)
        try:
            return await orchestrator.compile(run_id)
        finally:
            await orchestrator.service.close()

    try:
        artifact = run_async(_run())
    except CompilationError as e:
        console.print(f"[red]Compilation failed:[/red] {e}")
        sys.exit(1)

    suffix = " (partial)" if artifact.is_partially_complete else ""
    console.print(
        f"[green]Report saved to:[/green] {artifact.path} "
        f"({artifact.section_count} sections{suffix})"
    )


@main.command()
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--history-dir", type=click.Path(), default=None, help="Run history directory")
@click.option("--limit", "-n", type=int, default=20, help="Number of runs to show")
def history(config: str | None, history_dir: str | None, limit: int) -> None:
    """List recent runs."""
    cfg = _load_settings(config)
    store = _make_history(cfg, history_dir)
    runs = store.list_runs(limit=limit)
    if not runs:
        console.print("[dim]No runs recorded.[/dim]")
        return

    table = Table(title="Run History", show_header=True)
    table.add_column("Run ID", style="cyan")
    table.add_column("Template")
    table.add_column("Created", style="dim")
    table.add_column("Status")
    table.add_column("Sections", justify="right")
    table.add_column("Compiled")
    for run in runs:
        counts = run.aggregate()
        style = _STATUS_STYLES.get(run.status.value, "white")
        table.add_row(
            run.run_id,
            run.template_id,
            run.created_at.strftime("%Y-%m-%d %H:%M"),
            f"[{style}]{run.status.value}[/{style}]",
            f"{counts.completed}/{counts.total}",
            "Yes" if run.compiled else "No",
        )
    console.print(table)


@main.command()
@click.argument("template_id", required=False)
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
def templates(template_id: str | None, config: str | None) -> None:
    """List templates, or the sections of one template."""
    from sectionforge.catalog import list_templates

    _load_settings(config)

    if template_id is None:
        table = Table(title="Templates", show_header=True)
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Sections", justify="right")
        table.add_column("Est. Pages", justify="right")
        for template in list_templates():
            table.add_row(
                template.id,
                template.name,
                str(len(template.sections)),
                str(template.estimated_total_pages),
            )
        console.print(table)
        return

    template = _get_template(template_id)
    table = Table(title=template.name, show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Category")
    table.add_column("Priority")
    table.add_column("Pages", justify="right")
    for section in template.sections:
        table.add_row(
            section.id,
            section.title,
            section.category.value,
            section.priority.value,
            str(section.estimated_pages),
        )
    console.print(table)
    console.print(f"[dim]Default selection: {', '.join(template.high_priority_section_ids())}[/dim]")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
def config(config: str | None) -> None:
    """Display current configuration."""
    cfg = _load_settings(config)

    console.print(
        Panel(
            "[bold blue]SectionForge Configuration[/bold blue]",
            title="Configuration",
        )
    )

    console.print("[bold]Generation[/bold]")
    console.print(f"  Batch Size: {cfg.generation.batch_size}")
    console.print(f"  Max Retries: {cfg.generation.max_retries}")
    console.print(f"  Retry Delay: {cfg.generation.retry_delay_seconds}s")
    console.print(f"  Auto Compile: {cfg.generation.auto_compile}")
    console.print()

    console.print("[bold]Service[/bold]")
    console.print(f"  Base URL: {cfg.service.base_url}")
    console.print(f"  Model: {cfg.service.model}")
    console.print(f"  Timeout: {cfg.service.timeout_seconds}s")
    console.print()

    console.print("[bold]History[/bold]")
    console.print(f"  Backend: {cfg.history.backend.value}")
    console.print(f"  Directory: {cfg.history.directory}")
    console.print(f"  Max Runs: {cfg.history.max_runs}")
    console.print()

    console.print("[bold]Output[/bold]")
    console.print(f"  Base Directory: {cfg.output.base_dir}")


if __name__ == "__main__":
    main()
