"""
Composition root for the link flow client.

Wires SessionStore, LinkFlowController, ItemRegistry and TransactionViewer
around one shared AppStateHolder and one backend transport.
"""

from typing import Any, Dict, Optional

import structlog

from linkflow.core.config import settings
from linkflow.core.logging_config import configure_logging
from linkflow.domain.state import AppStateHolder
from linkflow.infrastructure.backend_client import BackendClient
from linkflow.infrastructure.contracts import BackendTransport, LinkWidget
from linkflow.services.linking import ItemRegistry, LinkFlowController, SessionStore
from linkflow.services.transactions import TransactionViewer

logger = structlog.get_logger(__name__)


class LinkApp:
    """The four link flow components sharing one state record."""

    def __init__(
        self,
        backend: BackendTransport,
        widget: Optional[LinkWidget] = None,
        state: Optional[AppStateHolder] = None,
    ):
        self.backend = backend
        self.state = state or AppStateHolder()
        self.sessions = SessionStore(backend, self.state)
        self.items = ItemRegistry(self.state, backend)
        self.link_flow = LinkFlowController(
            self.sessions, self.items, backend, self.state, widget=widget
        )
        self.transactions = TransactionViewer(self.sessions, backend, self.state)

    def snapshot(self) -> Dict[str, Any]:
        return self.state.snapshot()

    async def aclose(self) -> None:
        await self.backend.aclose()

    async def __aenter__(self) -> "LinkApp":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_link_app(
    backend: Optional[BackendTransport] = None,
    widget: Optional[LinkWidget] = None,
    configure_logs: bool = True,
) -> LinkApp:
    """
    Build a LinkApp, defaulting to the HTTP backend from settings.

    Args:
        backend: Transport to use instead of BackendClient
        widget: Linking widget presenter, if the caller has one
        configure_logs: Install the structlog configuration first
    """
    if configure_logs:
        configure_logging()
    if backend is None:
        backend = BackendClient()
    logger.info(
        "link_app_created",
        api_url=settings.api_url,
        environment=settings.environment,
        backend=type(backend).__name__,
    )
    return LinkApp(backend, widget=widget)
