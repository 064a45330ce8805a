"""
HTTP client for the aggregation backend.

Thin async wrapper over httpx: marshals request bodies, validates response
bodies into domain models once, and turns transport failures into
BackendError with the backend's own message attached.
"""

from typing import Any, List, Optional, Union

import httpx
import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from linkflow.core.config import settings
from linkflow.core.exceptions import BackendError, UserNotFoundError
from linkflow.domain.schemas import (
    Account,
    BackendItem,
    CreateUserRequest,
    ExchangeResult,
    ExchangeTokenRequest,
    LinkTokenRequest,
    LinkTokenResponse,
    TransactionsResponse,
    User,
)

logger = structlog.get_logger(__name__)

_items_adapter = TypeAdapter(List[BackendItem])
_accounts_adapter = TypeAdapter(List[Account])


def _wire_item_id(item_id: Optional[str]) -> Optional[Union[int, str]]:
    # The backend keys items by integer row id
    if item_id is not None and item_id.isdigit():
        return int(item_id)
    return item_id


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class BackendClient:
    """Async client for the users / link-token / items / transactions API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("backend_request_timeout", method=method, path=path)
            raise BackendError(f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(
                "backend_request_failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise BackendError(str(e)) from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "backend_error_response",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise BackendError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(
                "backend returned a non-JSON body", status_code=response.status_code
            ) from e

    def _parse(self, model, payload: Any, operation: str):
        try:
            if isinstance(model, TypeAdapter):
                return model.validate_python(payload)
            return model.model_validate(payload)
        except PydanticValidationError as e:
            logger.error("backend_response_invalid", operation=operation, error=str(e))
            raise BackendError(f"unexpected {operation} response: {e.error_count()} invalid field(s)") from e

    # Users
    async def create_user(self, username: str) -> User:
        body = CreateUserRequest(username=username).model_dump(by_alias=True)
        payload = await self._request("POST", "/api/users", json=body)
        return self._parse(User, payload, "create_user")

    async def get_user(self, user_id: int) -> User:
        try:
            payload = await self._request("GET", f"/api/users/{user_id}")
        except BackendError as e:
            # 400 is the backend rejecting an id it cannot address
            if e.status_code in (400, 404):
                raise UserNotFoundError(user_id, e.message, e.status_code) from e
            raise
        return self._parse(User, payload, "get_user")

    # Link tokens & items
    async def create_link_token(self, user_id: int, item_id: Optional[str] = None) -> str:
        body = LinkTokenRequest(user_id=user_id, item_id=_wire_item_id(item_id)).model_dump(by_alias=True)
        payload = await self._request("POST", "/api/link-token", json=body)
        return self._parse(LinkTokenResponse, payload, "create_link_token").link_token

    async def exchange_public_token(self, public_token: str, user_id: int) -> ExchangeResult:
        body = ExchangeTokenRequest(public_token=public_token, user_id=user_id).model_dump(by_alias=True)
        payload = await self._request("POST", "/api/items", json=body)
        return self._parse(ExchangeResult, payload, "exchange_public_token")

    async def get_user_items(self, user_id: int) -> List[BackendItem]:
        payload = await self._request("GET", f"/api/users/{user_id}/items")
        return self._parse(_items_adapter, payload or [], "get_user_items")

    async def get_item_accounts(self, item_id: str) -> List[Account]:
        payload = await self._request("GET", f"/api/items/{item_id}/accounts")
        return self._parse(_accounts_adapter, payload or [], "get_item_accounts")

    # Transactions
    async def get_user_transactions(self, user_id: int) -> TransactionsResponse:
        payload = await self._request("GET", f"/api/transactions/{user_id}")
        return self._parse(TransactionsResponse, payload or {}, "get_user_transactions")

    async def aclose(self) -> None:
        """Close the HTTP client"""
        await self.client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
