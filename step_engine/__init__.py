from .executor import (
    ActionNotAvailable,
    StepDefinitionError,
    StepExecutor,
    StepFailedError,
    expect_problem,
    join,
    validate_steps,
)
from .models import ActionSpec, ResponseAssertion, StatePredicate, Step, StepActor, StepOutcome
from .poller import PollTimeout, StatePoller
from .predicates import (
    alpha_ledger_is,
    beta_ledger_is,
    communication_is,
    ledger_is,
    state_after,
)

__all__ = [
    "ActionNotAvailable",
    "ActionSpec",
    "PollTimeout",
    "ResponseAssertion",
    "StatePoller",
    "StatePredicate",
    "Step",
    "StepActor",
    "StepDefinitionError",
    "StepExecutor",
    "StepFailedError",
    "StepOutcome",
    "alpha_ledger_is",
    "beta_ledger_is",
    "communication_is",
    "expect_problem",
    "join",
    "ledger_is",
    "state_after",
    "validate_steps",
]
