import datetime
import logging
import platform
from pathlib import Path

import psutil
from rich.console import Console
from rich.markup import escape
from rich.table import Table

logger = logging.getLogger(__name__)

LOG_FILENAME = None

# --- Console for Rich Output ---
console = Console(log_time_format="[%Y-%m-%d %H:%M:%S]")

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def print_success(message):
    console.print(f"[green]✔ success:[/green] {escape(message)}")
    logger.info(f"success: {message}")


def print_info(message):
    console.print(f"[blue]ⓘ info:[/blue] {escape(message)}")
    logger.info(f"info: {message}")


def print_error(message):
    console.print(f"[bold red]✖ error:[/bold red] {escape(message)}")
    logger.error(f"error: {message}")


def configure_logging(log_dir, level=logging.DEBUG):
    """
    Sends DEBUG-level detail to a timestamped log file under log_dir.
    Falls back to the current directory if log_dir cannot be created.
    Returns the path actually written to.
    """
    global LOG_FILENAME
    if LOG_FILENAME:
        return LOG_FILENAME

    timestamp = datetime.datetime.now().strftime('%Y%m%d_%H%M%S')
    filename = f"setup_{timestamp}.log"
    log_path = Path(log_dir) / filename
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, mode='w')
    except OSError:
        log_path = Path.cwd() / filename
        handler = logging.FileHandler(log_path, mode='w')

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    LOG_FILENAME = log_path

    logger.info(f"Logging initialized at {log_path}")
    return log_path


def show_system_info(ctx):
    """Prints what was detected about this machine before anything runs."""
    table = Table(title="System Information", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Details", style="yellow")

    memory = psutil.virtual_memory()
    disk = psutil.disk_usage(str(ctx.home))

    rows = [
        ("Operating System", f"{ctx.os_name} {platform.release()}"),
        ("Architecture", ctx.machine),
        ("Memory", f"{memory.total // (1024**3)} GB total, {memory.available // (1024**3)} GB available"),
        ("Disk Space", f"{disk.free // (1024**3)} GB free of {disk.total // (1024**3)} GB total"),
        ("Home", str(ctx.home)),
        ("Interactive", "yes" if ctx.interactive else "no"),
    ]
    for component, details in rows:
        table.add_row(component, details)
        logger.info(f"{component}: {details}")

    console.print(table)
