"""
Sequential runner for idempotent setup steps.

Every step is checked before it is acted on, so a second run over an
already-provisioned machine only performs checks. The first failing step
stops the run; later steps never execute.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from .command import CommandResult
from .console import print_error, print_info, print_success

logger = logging.getLogger(__name__)


class Status(str, Enum):
    SATISFIED = "satisfied"
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult:
    ok: bool
    detail: str = ""
    skipped: bool = False

    @classmethod
    def success(cls, detail=""):
        return cls(ok=True, detail=detail)

    @classmethod
    def skip(cls, detail):
        return cls(ok=True, detail=detail, skipped=True)

    @classmethod
    def failure(cls, detail):
        return cls(ok=False, detail=detail)

    @classmethod
    def from_command(cls, result: CommandResult):
        if result.ok:
            return cls.success()
        return cls.failure(result.describe())


@dataclass(frozen=True)
class Step:
    """
    One idempotent unit of work.

    check must not have side effects; it answers "is this already done?".
    action performs the work and returns a StepResult (a CommandResult or
    bool is accepted too). Raising from action counts as a failure.
    """

    name: str
    check: Callable[[], bool]
    action: Callable[[], object]


@dataclass(frozen=True)
class StepOutcome:
    name: str
    status: Status
    detail: str = ""


@dataclass(frozen=True)
class RunResult:
    ok: bool
    failed_step: Optional[str] = None
    error: str = ""
    outcomes: Tuple[StepOutcome, ...] = ()

    @property
    def exit_code(self):
        return 0 if self.ok else 1

    def count(self, status):
        return sum(1 for outcome in self.outcomes if outcome.status == status)


def _as_step_result(value):
    if isinstance(value, StepResult):
        return value
    if isinstance(value, CommandResult):
        return StepResult.from_command(value)
    if value is None or value is True:
        return StepResult.success()
    if value is False:
        return StepResult.failure("action reported failure")
    raise TypeError(f"Unsupported step action result: {value!r}")


def check_preconditions(ctx, config, is_online):
    """Platform first, then network. Returns an error message or None."""
    logger.info(f"Detected OS: {ctx.os_name}")
    if ctx.os_name != config.required_platform:
        return f"This script currently supports {config.required_platform} only (detected {ctx.os_name})."

    if not is_online():
        return "Cannot connect to the Internet"
    print_success("Internet reachable")
    return None


def run(steps: Sequence[Step], ctx, config, is_online: Callable[[], bool],
        on_ready: Optional[Callable[[], object]] = None) -> RunResult:
    """
    Runs steps in the given order, stopping at the first failure.
    on_ready is called once both gates have passed, before the first step.
    """
    problem = check_preconditions(ctx, config, is_online)
    if problem:
        print_error(problem)
        logger.critical(f"Precondition failed: {problem}")
        return RunResult(ok=False, error=problem)

    if on_ready is not None:
        on_ready()

    outcomes = []
    total = len(steps)
    for index, step in enumerate(steps, start=1):
        logger.info(f"Step {index}/{total}: {step.name}")
        try:
            satisfied = step.check()
            if satisfied:
                print_success(f"{step.name} already done")
                outcomes.append(StepOutcome(step.name, Status.SATISFIED))
                continue

            print_info(f"Installing {step.name}")
            result = _as_step_result(step.action())
        except Exception as exc:
            logger.exception(f"Unexpected error during step: {step.name}")
            result = StepResult.failure(f"{type(exc).__name__}: {exc}")

        if not result.ok:
            print_error(f"{step.name} failed: {result.detail}")
            logger.critical(f"Failed step: {step.name}. Aborting.")
            outcomes.append(StepOutcome(step.name, Status.FAILED, result.detail))
            return RunResult(ok=False, failed_step=step.name, error=result.detail, outcomes=tuple(outcomes))

        if result.skipped:
            print_info(f"Skipping {step.name}: {result.detail}")
            outcomes.append(StepOutcome(step.name, Status.SKIPPED, result.detail))
        else:
            print_success(step.name)
            outcomes.append(StepOutcome(step.name, Status.APPLIED, result.detail))

    logger.info(f"All {total} steps completed")
    return RunResult(ok=True, outcomes=tuple(outcomes))
