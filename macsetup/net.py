import logging

from .command import run_command

logger = logging.getLogger(__name__)


def is_online(host, runner=run_command):
    """Single quiet ping with a one second timeout."""
    result = runner(["ping", "-q", "-c", "1", "-t", "1", host], description=f"Checking connectivity to {host}")
    if result.ok:
        logger.info(f"{host} is reachable")
        return True
    logger.warning(f"{host} is not reachable (ping exit code {result.returncode})")
    return False
