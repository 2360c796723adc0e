"""Sequential, fail-fast execution of actor steps against live daemons."""

import asyncio
import logging
from typing import Any, Awaitable, Iterable, List, Optional, Sequence, Tuple

from protocol_client.client import UnexpectedResponse
from protocol_client.models import ActionKind, ActionResponse

from .models import Step, StepOutcome
from .poller import StatePoller
from .predicates import describe

log = logging.getLogger(__name__)


class ActionNotAvailable(LookupError):
    """Raised when the daemon does not currently offer the requested action."""

    def __init__(self, actor_name: str, kind: ActionKind, offered: Iterable[str]) -> None:
        self.actor_name = actor_name
        self.kind = kind
        self.offered = tuple(offered)
        offered_text = ", ".join(self.offered) or "none"
        super().__init__(
            f"{actor_name} cannot {kind.value}: daemon currently offers [{offered_text}]"
        )


class StepDefinitionError(ValueError):
    """Raised when a step sequence is malformed before anything executes."""


class StepFailedError(RuntimeError):
    """Raised when a step fails; the original error is chained as the cause."""

    def __init__(self, index: int, step: Step, cause: Exception) -> None:
        self.index = index
        self.step = step
        self.cause = cause
        super().__init__(
            f"Step {index} ({step.label}) failed with {type(cause).__name__}: {cause}"
        )


class StepExecutor:
    """Drives steps strictly in order and stops at the first unmet step."""

    def __init__(self, poller: Optional[StatePoller] = None) -> None:
        self._poller = poller or StatePoller()

    @property
    def poller(self) -> StatePoller:
        return self._poller

    async def run(self, steps: Sequence[Step]) -> Tuple[StepOutcome, ...]:
        validate_steps(steps)

        outcomes: List[StepOutcome] = []
        for index, step in enumerate(steps, start=1):
            log.info("Step %d: %s", index, step.label)
            try:
                outcome = await self._run_step(index, step)
            except Exception as exc:
                log.error(
                    "Step %d (%s) failed with %s: %s", index, step.label, type(exc).__name__, exc
                )
                raise StepFailedError(index, step, exc) from exc
            outcomes.append(outcome)
        return tuple(outcomes)

    async def _run_step(self, index: int, step: Step) -> StepOutcome:
        action = await step.actor.resolve_action(step.kind)
        response = await step.actor.execute_action(action)

        if step.response_assertion is not None:
            _apply_response_assertion(step, response)
            return StepOutcome(index, step.actor.name, step.kind, response)

        if not response.ok:
            raise UnexpectedResponse(response, f"{step.kind.value} was rejected")

        state = None
        if step.wait_until is not None:
            state = await self._poller.poll(
                step.actor.fetch_swap_state,
                step.wait_until,
                description=f"{step.actor.name}: {describe(step.wait_until)}",
            )
        return StepOutcome(index, step.actor.name, step.kind, response, state)


async def join(*awaitables: Awaitable[Any]) -> Tuple[Any, ...]:
    """Awaits all concurrently; on the first failure the rest are cancelled."""

    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return tuple(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def validate_steps(steps: Sequence[Step]) -> None:
    for index, step in enumerate(steps, start=1):
        if not isinstance(step.kind, ActionKind):
            raise StepDefinitionError(f"Step {index} action must be an ActionKind.")
        if step.response_assertion is not None and step.wait_until is not None:
            raise StepDefinitionError(
                f"Step {index} may assert on the response or wait on state, not both."
            )


def _apply_response_assertion(step: Step, response: ActionResponse) -> None:
    try:
        step.response_assertion(response)
    except AssertionError as exc:
        raise UnexpectedResponse(
            response, f"{step.kind.value} response assertion failed: {exc}"
        ) from exc


def expect_problem(status_code: int, title: str):
    """Response assertion for a synchronous rejection with an exact problem title."""

    def assertion(response: ActionResponse) -> None:
        if response.status_code != status_code:
            raise AssertionError(f"expected HTTP {status_code}, got {response.status_code}")
        if response.title != title:
            raise AssertionError(f"expected title {title!r}, got {response.title!r}")

    return assertion
