"""Async HTTP client for one actor's protocol daemon."""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .models import (
    Action,
    ActionResponse,
    PeerInfo,
    PeerList,
    Position,
    SwapCollection,
    SwapHandle,
    SwapRequest,
    SwapResource,
    SwapState,
)

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ProtocolClientError(RuntimeError):
    """Base class for failures talking to a protocol daemon."""


class TransientFetchError(ProtocolClientError):
    """Raised when the daemon cannot be reached at the network level."""

    def __init__(self, method: str, url: str, cause: Exception) -> None:
        self.method = method
        self.url = url
        self.cause = cause
        super().__init__(f"{method} {url} failed: {cause!r}")


class UnexpectedResponse(ProtocolClientError):
    """Raised when the daemon answers with a status or body the caller did not expect."""

    def __init__(self, response: ActionResponse, reason: str = "Unexpected response") -> None:
        self.response = response
        self.reason = reason
        super().__init__(
            f"{reason}: HTTP {response.status_code} from {response.url or '<unknown>'}: "
            f"{response.body!r}"
        )


class MalformedResponse(UnexpectedResponse):
    """Raised when a successful response body does not match the expected schema."""


class ProtocolClient:
    """Typed view onto a daemon's HTTP control surface.

    Read operations raise on anything but a 2xx answer. Executing an action
    never raises on a 4xx answer: the raw status and problem body are handed
    back so scenarios can assert on rejected preconditions verbatim.

    Resources are read as plain JSON documents. Siren documents
    (``application/vnd.siren+json``) are not unwrapped and fail validation
    as ``MalformedResponse``.
    """

    def __init__(
        self,
        base_url: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "ProtocolClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def get_info(self) -> PeerInfo:
        return await self._fetch_model("/", PeerInfo)

    async def get_peers(self) -> Tuple[str, ...]:
        return (await self._fetch_model("/peers", PeerList)).peers

    async def dial(self, peer_id: str, addresses: Tuple[str, ...] = ()) -> None:
        response = await self._send(
            "POST", "/dial", json={"peer_id": peer_id, "addresses": list(addresses)}
        )
        _require_success(response)

    async def create_swap(self, protocol: str, request: SwapRequest) -> SwapHandle:
        response = await self._send(
            "POST",
            f"/swaps/{protocol}",
            json=request.model_dump(mode="json", exclude_none=True),
        )
        if response.status_code != 201:
            raise UnexpectedResponse(response, "Swap request was not created")
        href = _location(response)
        return SwapHandle(id=href.rstrip("/").rsplit("/", 1)[-1], href=href)

    async def list_swaps(self) -> Tuple[SwapResource, ...]:
        return (await self._fetch_model("/swaps", SwapCollection)).swaps

    async def get_swap(self, swap_id: str) -> SwapResource:
        return await self._fetch_model(f"/swaps/{swap_id}", SwapResource)

    async def get_swap_state(self, swap_id: str) -> SwapState:
        return await self._fetch_model(f"/swaps/{swap_id}/state", SwapState)

    async def make_order(
        self,
        position: Position,
        quantity: int,
        price: int,
        identities: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Places a BTC/DAI order; ``identities`` maps ledger name to our address."""

        body: Dict[str, Any] = {
            "position": position.value,
            "quantity": str(quantity),
            "price": str(price),
        }
        if identities:
            body["identities"] = dict(identities)
        response = await self._send("POST", "/orders", json=body)
        if response.status_code != 201:
            raise UnexpectedResponse(response, "Order was not created")
        return _location(response).rstrip("/").rsplit("/", 1)[-1]

    async def execute_action(
        self, action: Action, params: Optional[Dict[str, Any]] = None
    ) -> ActionResponse:
        method = action.method.upper()
        if method == "GET":
            return await self._send(method, action.href, params=params or None)
        return await self._send(method, action.href, json=params or {})

    async def _fetch_model(self, path: str, model: Type[ModelT]) -> ModelT:
        response = await self._send("GET", path)
        _require_success(response)
        try:
            return model.model_validate(response.body)
        except ValidationError as exc:
            raise MalformedResponse(response, f"Body is not a valid {model.__name__}") from exc

    async def _send(self, method: str, url: str, **kwargs: Any) -> ActionResponse:
        log.debug("%s %s%s", method, self._base_url, url)
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise TransientFetchError(method, f"{self._base_url}{url}", exc) from exc
        return ActionResponse(
            status_code=response.status_code,
            body=_decode_body(response),
            headers=dict(response.headers),
            url=str(response.request.url),
        )


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _require_success(response: ActionResponse) -> None:
    if not response.ok:
        raise UnexpectedResponse(response)


def _location(response: ActionResponse) -> str:
    location = response.headers.get("location")
    if not location:
        raise MalformedResponse(response, "Missing Location header")
    return location
