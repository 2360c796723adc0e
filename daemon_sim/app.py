"""FastAPI surface of a simulated daemon, serving the plain JSON shapes ProtocolClient reads."""

from typing import Any, Dict, Tuple

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from protocol_client.models import ActionKind, Position, SwapRequest

from .network import SimulatedDaemon
from .swaps import ProblemError

PROBLEM_JSON = "application/problem+json"


class DialRequest(BaseModel):
    peer_id: str
    addresses: Tuple[str, ...] = ()


class OrderRequest(BaseModel):
    position: Position
    quantity: str
    price: str
    identities: Dict[str, str] = {}


def create_app(daemon: SimulatedDaemon) -> FastAPI:
    app = FastAPI(title=f"Simulated daemon {daemon.name}")

    @app.exception_handler(ProblemError)
    async def _handle_problem(request: Request, exc: ProblemError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code, media_type=PROBLEM_JSON)

    @app.get("/")
    async def info() -> Dict[str, Any]:
        return {"id": daemon.peer_id, "listen_addresses": list(daemon.listen_addresses)}

    @app.get("/peers")
    async def peers() -> Dict[str, Any]:
        return {"peers": list(daemon.peers)}

    @app.post("/dial")
    async def dial(payload: DialRequest) -> Dict[str, Any]:
        daemon.dial(payload.peer_id)
        return {}

    @app.post("/swaps/{protocol}", status_code=201)
    async def create_swap(protocol: str, payload: SwapRequest) -> Response:
        swap = daemon.create_swap(protocol, payload)
        return Response(status_code=201, headers={"Location": f"/swaps/{swap.id}"})

    @app.get("/swaps")
    async def list_swaps() -> Dict[str, Any]:
        return {
            "swaps": [
                swap.resource(daemon.peer_id).model_dump(mode="json") for swap in daemon.swaps()
            ]
        }

    @app.get("/swaps/{swap_id}")
    async def get_swap(swap_id: str) -> Dict[str, Any]:
        return daemon.swap(swap_id).resource(daemon.peer_id).model_dump(mode="json")

    @app.get("/swaps/{swap_id}/state")
    async def get_swap_state(swap_id: str) -> Dict[str, Any]:
        return daemon.swap(swap_id).state().model_dump(mode="json")

    @app.post("/swaps/{swap_id}/{action}")
    async def execute_action(
        swap_id: str, action: str, params: Dict[str, Any] = Body(default={})
    ) -> Dict[str, Any]:
        try:
            kind = ActionKind(action)
        except ValueError as exc:
            raise ProblemError("Unknown action.", f"{action} is not an action.", 404) from exc
        swap = daemon.swap(swap_id)
        return swap.execute(swap.role_of(daemon.peer_id), kind, params)

    @app.post("/orders", status_code=201)
    async def make_order(payload: OrderRequest) -> Response:
        try:
            quantity, price = int(payload.quantity), int(payload.price)
        except ValueError as exc:
            raise ProblemError("Invalid order.", "quantity and price must be integers.") from exc
        order = daemon.place_order(payload.position, quantity, price, payload.identities)
        return Response(status_code=201, headers={"Location": f"/orders/{order.id}"})

    return app
