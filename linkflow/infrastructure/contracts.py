"""
Collaborator contracts consumed by the link flow.

The backend and the linking widget are injected behind these protocols so
the flow can run against the HTTP adapter in production and fakes in tests.
"""

from typing import List, Optional, Protocol

from linkflow.domain.schemas import (
    Account,
    BackendItem,
    ExchangeResult,
    TransactionsResponse,
    User,
)


class BackendTransport(Protocol):
    """Aggregation backend operations. Failures raise BackendError."""

    async def create_user(self, username: str) -> User: ...

    async def get_user(self, user_id: int) -> User:
        """Raises UserNotFoundError when the id is unknown."""
        ...

    async def create_link_token(self, user_id: int, item_id: Optional[str] = None) -> str: ...

    async def exchange_public_token(self, public_token: str, user_id: int) -> ExchangeResult: ...

    async def get_user_items(self, user_id: int) -> List[BackendItem]: ...

    async def get_item_accounts(self, item_id: str) -> List[Account]: ...

    async def get_user_transactions(self, user_id: int) -> TransactionsResponse: ...

    async def aclose(self) -> None: ...


class LinkWidget(Protocol):
    """
    External linking widget.

    After open(token) the widget calls back exactly one of
    LinkFlowController.on_widget_success or LinkFlowController.on_widget_exit.
    """

    def open(self, token: str) -> None: ...
