import argparse
import datetime
import logging
import sys

from rich.panel import Panel
from rich.prompt import Prompt
from rich.rule import Rule
from rich.table import Table
from rich.markup import escape
from rich.text import Text

from .command import run_command
from .config import SetupConfig, load_context
from .console import configure_logging, console, print_info, show_system_info
from .net import is_online
from .provisioner import Status, run
from .steps import build_steps

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    Status.SATISFIED: "[green]already done[/green]",
    Status.APPLIED: "[bold green]installed[/bold green]",
    Status.SKIPPED: "[yellow]skipped[/yellow]",
    Status.FAILED: "[bold red]failed[/bold red]",
}


def ask_for_string(question):
    return Prompt.ask(question, default="", show_default=False, console=console)


def prime_sudo():
    # Cache sudo credentials for /etc/shells; failure surfaces later if it matters
    run_command(["sudo", "-v"], description="Asking for sudo", capture_output=False)


def show_summary(result):
    table = Table(title="Setup Summary", show_header=True, header_style="bold magenta")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Details", style="dim")
    for outcome in result.outcomes:
        if outcome.status == Status.SATISFIED:
            continue
        table.add_row(outcome.name, STATUS_STYLES[outcome.status], escape(outcome.detail))

    satisfied = result.count(Status.SATISFIED)
    if table.row_count:
        console.print(table)
    console.print(f"[dim]{satisfied} step(s) were already in place.[/dim]")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="macsetup",
        description="Sets up a macOS development machine. Safe to run repeatedly.",
    )
    parser.parse_args(argv)

    config = SetupConfig()
    ctx = load_context()
    log_path = configure_logging(ctx.log_dir(config))

    start_time = datetime.datetime.now()
    console.print(Panel(
        Text("macOS development machine setup", justify="center", style="bold cyan"),
        title="Welcome!",
        subtitle=f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}",
        border_style="blue",
    ))
    console.print(f"Logging detailed output to: [dim]{log_path}[/dim]")
    logger.info(f"Setup started at {start_time}")
    logger.info(f"Python version: {sys.version}")

    print_info(f"Detected OS: {ctx.os_name}")
    print_info(f"Interactive shell session: {str(ctx.interactive).lower()}")
    show_system_info(ctx)

    steps = build_steps(config, ctx, runner=run_command, prompt=ask_for_string)
    console.print(Rule(f"[bold cyan]Running {len(steps)} steps[/bold cyan]"))

    result = run(steps, ctx, config,
                 is_online=lambda: is_online(config.connectivity_host), on_ready=prime_sudo)

    console.print(Rule())
    show_summary(result)

    duration = datetime.datetime.now() - start_time
    if result.ok:
        console.print(Panel(
            Text("All done!", justify="center", style="bold green"),
            title="Finished!",
            subtitle=f"Duration: {str(duration).split('.')[0]}",
            border_style="green",
            expand=False,
        ))
        logger.info(f"Setup completed successfully. Duration: {duration}")
    else:
        where = f"during step '{result.failed_step}'" if result.failed_step else "before any step ran"
        console.print(Panel(
            f"[bold red]Setup failed {where}.[/bold red]\n{escape(result.error)}\n\n"
            f"Fix the problem and run again; completed steps will be skipped.\n"
            f"Logs: [dim]{log_path}[/dim]",
            title="Setup Failed",
            border_style="red",
            expand=False,
        ))
        logger.critical(f"Setup failed {where}: {result.error}")
    return result.exit_code


def entrypoint():
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Setup interrupted by user (Ctrl+C).[/bold yellow]")
        logger.warning("Setup interrupted by user (KeyboardInterrupt).")
        sys.exit(130)
    except Exception:
        console.print("\n[bold red]An unexpected critical error occurred:[/bold red]")
        logger.critical("Unexpected critical error during main execution.", exc_info=True)
        console.print_exception(show_locals=False, word_wrap=True)
        sys.exit(2)
