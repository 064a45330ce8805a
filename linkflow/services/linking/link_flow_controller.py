"""
Link flow controller.

Drives one account-linking attempt at a time: link token issuance, the
widget handshake, and the public token exchange. The LinkFlowMachine
validates sequencing; this controller performs the backend calls around
its events and mirrors every step onto the shared AppState.
"""

import uuid
from typing import Any, Dict, Mapping, Optional, Union

import structlog

from linkflow.core.config import settings
from linkflow.core.decorators import tracks_operation
from linkflow.core.exceptions import (
    BackendError,
    ExchangeError,
    FlowBusyError,
    FlowStateError,
    ItemSelectionError,
    TokenIssuanceError,
    UserResolutionError,
    WidgetExitError,
)
from linkflow.domain.schemas import (
    FlowState,
    Item,
    LinkMode,
    LinkSession,
    User,
    WidgetError,
    WidgetMetadata,
)
from linkflow.domain.state import (
    AppStateHolder,
    clear_error,
    clear_link_token,
    fail_operation,
    reset_link_session,
    select_link_item,
    set_flow_state,
    set_link_mode,
    set_link_token,
)
from linkflow.infrastructure.contracts import BackendTransport, LinkWidget
from linkflow.state_machines.link_flow import LinkFlowMachine

from .item_registry import ItemRegistry
from .session_store import SessionStore

logger = structlog.get_logger(__name__)


class LinkFlowController:
    """
    Orchestrates token issuance, widget handoff and exchange.

    Only one attempt may be in flight; a token request outside `idle` is
    rejected with FlowBusyError rather than queued.
    """

    def __init__(
        self,
        sessions: SessionStore,
        registry: ItemRegistry,
        backend: BackendTransport,
        state: AppStateHolder,
        widget: Optional[LinkWidget] = None,
    ):
        self.sessions = sessions
        self.registry = registry
        self.backend = backend
        self.state = state
        self.widget = widget
        self.machine = LinkFlowMachine(context={"mode": LinkMode.NORMAL.value})
        self._sync_flow_state()

    # Read side
    @property
    def flow_state(self) -> FlowState:
        return FlowState(self.machine.current_state.id)

    @property
    def session(self) -> LinkSession:
        return self.state.current.link

    @property
    def can_request_token(self) -> bool:
        """
        Whether the "request token" action should be enabled.

        Update mode without a selected item is a disabled action, not an error.
        """
        if not self.machine.in_state("idle") or self.sessions.active_user is None:
            return False
        session = self.session
        if session.mode == LinkMode.UPDATE:
            return session.selected_item_id is not None and session.selected_item_id in self.registry
        return True

    def get_flow_info(self) -> Dict[str, Any]:
        info = self.machine.get_flow_info()
        info["link"] = {
            "mode": self.session.mode.value,
            "has_token": self.session.token is not None,
            "selected_item_id": self.session.selected_item_id,
        }
        return info

    # Mode & item selection
    def set_mode(self, mode: Union[LinkMode, str]) -> LinkSession:
        """
        Switch between normal and update mode.

        Normal always clears the selected item. Update never auto-selects and
        needs at least one registered item.
        """
        mode = LinkMode(mode)
        if mode == LinkMode.UPDATE and not self.registry.has_items:
            raise ItemSelectionError("There are no linked items to update")
        self.state.apply(set_link_mode, mode)
        logger.debug("link_mode_set", mode=mode.value)
        return self.session

    def select_item(self, item_id: str) -> LinkSession:
        if item_id not in self.registry:
            raise ItemSelectionError(
                f"Unknown item {item_id}", details={"item_id": item_id}
            )
        self.state.apply(select_link_item, item_id)
        return self.session

    # Token issuance
    @tracks_operation("request_link_token")
    async def request_link_token(
        self,
        user: Optional[User] = None,
        mode: Optional[Union[LinkMode, str]] = None,
        item_id: Optional[str] = None,
    ) -> str:
        """
        Ask the backend for a link token for the acting user.

        Args:
            user: Acting user; must be the active user if given
            mode: Switch to this mode first (same rules as set_mode)
            item_id: Select this item first (update mode)

        Returns:
            The issued link token (also kept on the link session)

        Raises:
            FlowBusyError: If an attempt is already in progress
            NoActiveUserError: If no user is active
            UserResolutionError: If user is not the active user
            ItemSelectionError: If update mode has no known selected item
            TokenIssuanceError: If the backend fails to issue the token
        """
        if not self.machine.in_state("idle"):
            raise FlowBusyError(self.machine.current_state.id)

        active = self.sessions.require_active_user()
        if user is not None and user.id != active.id:
            raise UserResolutionError(
                f"User {user.id} is not the active user",
                details={"user_id": user.id, "active_user_id": active.id},
            )
        user = active

        if mode is not None:
            self.set_mode(mode)
        if item_id is not None:
            self.select_item(item_id)

        session = self.session
        target_item_id: Optional[str] = None
        if session.mode == LinkMode.UPDATE:
            target_item_id = session.selected_item_id
            if target_item_id is None:
                raise ItemSelectionError("Select an item to update before requesting a link token")
            if target_item_id not in self.registry:
                raise ItemSelectionError(
                    f"Unknown item {target_item_id}", details={"item_id": target_item_id}
                )

        self._begin_attempt(user, session.mode, target_item_id)
        self._fire("request_token")

        try:
            token = await self.backend.create_link_token(user.id, target_item_id)
        except BackendError as e:
            self._fail("TOKEN_ISSUANCE_FAILED", e.message)
            raise TokenIssuanceError(
                f"Failed to get link token: {e.message}",
                details={"user_id": user.id, "item_id": target_item_id, "cause": e.message},
            ) from e

        self.state.apply(set_link_token, token)
        self._fire("token_issued")
        logger.info(
            "link_token_issued",
            user_id=user.id,
            mode=session.mode.value,
            item_id=target_item_id,
        )
        return token

    # Widget handshake
    def open_widget(self) -> str:
        """Hand the ready token to the widget."""
        if not self.machine.in_state("token_ready"):
            raise FlowStateError(
                "No link token is ready to open the widget",
                state=self.machine.current_state.id,
            )
        token = self.session.token
        self._fire("present_widget")
        if self.widget is not None:
            self.widget.open(token)
        return token

    @tracks_operation("exchange_public_token")
    async def on_widget_success(
        self,
        public_token: str,
        metadata: Optional[Union[WidgetMetadata, Mapping[str, Any]]] = None,
    ) -> Item:
        """
        Exchange the widget's public token and register the resulting item.

        On success the session returns to normal mode without a token or
        selected item, and the flow passes through `linked` back to `idle`.
        On failure the flow stays in `error`; token and mode are untouched.

        Raises:
            FlowStateError: If the widget is not open
            NoActiveUserError: If the active user went away
            ExchangeError: If the backend exchange fails
        """
        if not self.machine.in_state("widget_open"):
            raise FlowStateError(
                "Widget success received while the widget is not open",
                state=self.machine.current_state.id,
            )
        user = self.sessions.require_active_user()

        if isinstance(metadata, WidgetMetadata):
            widget_metadata = metadata
        else:
            widget_metadata = WidgetMetadata.model_validate(metadata or {})

        self._fire("widget_succeeded")
        try:
            result = await self.backend.exchange_public_token(public_token, user.id)
        except BackendError as e:
            self._fail("EXCHANGE_FAILED", e.message)
            raise ExchangeError(
                f"Failed to exchange token: {e.message}",
                details={"user_id": user.id, "cause": e.message},
            ) from e

        item = Item(
            id=result.item_id,
            institution=widget_metadata.institution_name(settings.unknown_institution_label),
            accounts=tuple(result.accounts),
        )
        self.machine.context["item_id"] = item.id
        self.registry.add_item(item)
        self.state.apply(reset_link_session)
        self.machine.context["mode"] = LinkMode.NORMAL.value

        self._fire("exchange_succeeded")
        self._fire("rearm")
        self._end_attempt()
        return item

    def on_widget_exit(
        self,
        error: Optional[Union[WidgetError, Mapping[str, Any], str, BaseException]] = None,
    ) -> Optional[WidgetExitError]:
        """
        Handle the widget closing without a public token.

        Without an error (user cancelled) the token is cleared and the flow
        returns to `idle`; mode and selected item are kept. With an error the
        flow moves to `error` and the error is returned for the caller to show.
        """
        if not self.machine.in_state("widget_open", "token_ready"):
            raise FlowStateError(
                "Widget exit received while no widget session is active",
                state=self.machine.current_state.id,
            )

        if error is None:
            self.state.apply(clear_link_token)
            self._fire("widget_cancelled")
            logger.info("link_widget_cancelled", user_id=self.machine.user_id)
            self._end_attempt()
            return None

        widget_error = WidgetError.coerce(error)
        message = f"Link closed with error: {widget_error.error_message}"
        self._fail(widget_error.error_code or "WIDGET_EXIT_ERROR", message)
        self.state.apply(fail_operation, message)
        return WidgetExitError(message, details=widget_error.model_dump(exclude_none=True))

    def reset(self) -> None:
        """Force the flow back to `idle`, dropping the token and last error."""
        previous = self.machine.current_state.id
        if not self.machine.in_state("idle"):
            self._fire("abandon")
        self.state.apply(clear_link_token)
        self.state.apply(clear_error)
        self._end_attempt()
        logger.info("link_flow_reset", from_state=previous)

    # Internals
    def _fire(self, event: str) -> None:
        self.machine.send(event)
        self._sync_flow_state()

    def _fail(self, error_code: str, error_message: str) -> None:
        self.machine.fail(error_code, error_message)
        self._sync_flow_state()
        self._end_attempt()

    def _sync_flow_state(self) -> None:
        self.state.apply(set_flow_state, self.flow_state)

    def _begin_attempt(self, user: User, mode: LinkMode, item_id: Optional[str]) -> None:
        attempt_id = uuid.uuid4().hex
        self.machine.user_id = user.id
        self.machine.context.update(
            {"attempt_id": attempt_id, "mode": mode.value, "item_id": item_id}
        )
        structlog.contextvars.bind_contextvars(link_attempt_id=attempt_id)

    def _end_attempt(self) -> None:
        structlog.contextvars.unbind_contextvars("link_attempt_id")
