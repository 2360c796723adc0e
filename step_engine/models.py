"""Domain models for the step engine."""

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Union

from protocol_client.models import Action, ActionKind, ActionResponse, SwapState

ResponseAssertion = Callable[[ActionResponse], None]
StatePredicate = Callable[[SwapState], bool]


class StepActor(Protocol):
    @property
    def name(self) -> str:
        ...

    async def resolve_action(self, kind: ActionKind) -> Action:
        ...

    async def execute_action(self, action: Action) -> ActionResponse:
        ...

    async def fetch_swap_state(self) -> SwapState:
        ...


@dataclass(frozen=True)
class ActionSpec:
    """An action whose completion is judged on the HTTP response alone."""

    kind: ActionKind
    response_assertion: Optional[ResponseAssertion] = None


@dataclass(frozen=True)
class Step:
    actor: StepActor
    action: Union[ActionKind, ActionSpec]
    wait_until: Optional[StatePredicate] = None
    description: str = ""

    @property
    def kind(self) -> ActionKind:
        if isinstance(self.action, ActionSpec):
            return self.action.kind
        return self.action

    @property
    def response_assertion(self) -> Optional[ResponseAssertion]:
        if isinstance(self.action, ActionSpec):
            return self.action.response_assertion
        return None

    @property
    def label(self) -> str:
        kind = self.kind.value if isinstance(self.kind, ActionKind) else repr(self.kind)
        label = f"{self.actor.name}: {kind}"
        if self.description:
            label += f" ({self.description})"
        return label


@dataclass(frozen=True)
class StepOutcome:
    index: int
    actor_name: str
    kind: ActionKind
    response: ActionResponse
    state: Optional[SwapState] = None
