"""Main CLI for process tools."""

from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.config import ProcessToolsConfig, load_config
from ..errors.translator import ErrorTranslator
from ..process import win32
from ..process.tree import ProcessTreeController, TreeSweepReport
from ..utils.rich_logging import setup_logging
from .demo import run_demo


console = Console()


def _fail(ctx: click.Context, error: BaseException) -> NoReturn:
    """Print a translated error and exit with status 1."""
    translator = ErrorTranslator()
    friendly = translator.translate(error)
    console.print(translator.format_for_cli(friendly))
    ctx.exit(1)


def _print_report(report: TreeSweepReport, verb: str) -> None:
    table = Table(title=f"{verb} descendants of {report.root_pid}")
    table.add_column("PID", justify="right")
    table.add_column("Result")

    for pid in report.acted:
        table.add_row(str(pid), f"[green]{verb.lower()}[/]")
    for pid in report.skipped:
        table.add_row(str(pid), "[dim]skipped[/]")

    if report.acted or report.skipped:
        console.print(table)
    else:
        console.print(f"[green]✓ No descendants of {report.root_pid} needed action[/]")


@click.group()
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML configuration file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx, config_path: Optional[Path], log_level: Optional[str]):
    """Process tools - escalating termination for threads and process trees."""
    ctx.ensure_object(dict)
    setup_logging(log_level or "INFO")

    try:
        config = load_config(config_path) if config_path else ProcessToolsConfig()
    except Exception as e:
        _fail(ctx, e)

    if log_level is None:
        setup_logging(config.log_level)
    ctx.obj["config"] = config


@cli.command()
@click.option("--no-cooperative", is_flag=True, help="Demo work ignores cancellation requests")
@click.option("--parameterless", is_flag=True, help="Run niladic demo work")
@click.option("--user-object", default=None, help="Value handed to the demo work")
@click.option("--run-for", type=float, default=None, help="Seconds before cancelling")
@click.option("--cooperative-wait", type=float, default=None, help="Seconds to wait for a cooperative stop")
@click.option("--abort-wait", type=float, default=None, help="Seconds to wait after forcing an abort")
@click.option("--tick", type=float, default=None, help="Seconds between progress reports")
@click.pass_context
def demo(ctx, no_cooperative, parameterless, user_object, run_for, cooperative_wait, abort_wait, tick):
    """Start a worker, cancel it cooperatively, and force it if needed."""
    config: ProcessToolsConfig = ctx.obj["config"]

    updates = {
        "cooperative": False if no_cooperative else None,
        "parameterized": False if parameterless else None,
        "user_object": user_object,
        "run_before_cancel": run_for,
        "cooperative_wait": cooperative_wait,
        "abort_wait": abort_wait,
        "tick": tick,
    }
    demo_config = config.demo.model_copy(
        update={k: v for k, v in updates.items() if v is not None}
    )

    worker = run_demo(
        demo_config,
        echo=lambda line: console.print(escape(line)),
        abort_grace=config.worker.abort_grace,
    )

    table = Table(title="Demo outcome")
    table.add_column("Worker")
    table.add_column("State")
    table.add_column("Alive")
    table.add_column("Last error")
    last_error = worker.last_error
    table.add_row(
        worker.name,
        worker.state.value,
        str(worker.is_alive),
        escape(f"{type(last_error).__name__}: {last_error}") if last_error else "-",
    )
    console.print(table)
    console.print("Main: good bye!")


@cli.command()
@click.argument("pid", type=int)
@click.option("--rounds", "-n", type=click.IntRange(min=1), default=None, help="Polling rounds before killing")
@click.pass_context
def reap(ctx, pid, rounds):
    """Wait for the descendants of PID to exit, killing survivors at last."""
    config: ProcessToolsConfig = ctx.obj["config"]
    controller = ProcessTreeController.from_config(config.process_tree)

    try:
        report = controller.reap_descendants(pid, rounds or config.process_tree.reap_rounds)
    except Exception as e:
        _fail(ctx, e)

    _print_report(report, "Killed")


@cli.command()
@click.argument("pid", type=int)
@click.pass_context
def foreground(ctx, pid):
    """Bring the main windows of all descendants of PID to the foreground."""
    config: ProcessToolsConfig = ctx.obj["config"]
    controller = ProcessTreeController.from_config(config.process_tree)

    try:
        report = controller.raise_to_foreground(pid)
    except Exception as e:
        _fail(ctx, e)

    _print_report(report, "Raised")


@cli.command("show-me")
@click.option("--message", "-m", default=win32.SHOW_ME_MESSAGE, help="Registered message name")
@click.pass_context
def show_me(ctx, message):
    """Ask an already running instance to activate itself."""
    try:
        message_id = win32.broadcast_show_me(message)
    except Exception as e:
        _fail(ctx, e)

    console.print(f"[green]✓ Broadcast {escape(message)} ({message_id:#06x})[/]")
