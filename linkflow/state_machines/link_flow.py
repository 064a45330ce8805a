"""
Link Flow State Machine.

Sequences one account-linking attempt: link token issuance, widget
handshake, and public token exchange. In-memory only; the controller
performs the network calls and fires events around them.
"""

import structlog
from statemachine import State

from .base import FlowMachine

logger = structlog.get_logger(__name__)


class LinkFlowMachine(FlowMachine):
    """
    State machine for the account linking flow.

    idle -> token_requested -> token_ready -> widget_open -> exchanging -> linked -> idle
    Any step may fall into error, which is left only through abandon.
    """

    idle = State(initial=True, value="idle")
    token_requested = State(value="token_requested")
    token_ready = State(value="token_ready")
    widget_open = State(value="widget_open")
    exchanging = State(value="exchanging")
    linked = State(value="linked")
    error = State(value="error")

    request_token = idle.to(token_requested)
    token_issued = token_requested.to(token_ready)
    token_failed = token_requested.to(error)

    present_widget = token_ready.to(widget_open)
    widget_succeeded = widget_open.to(exchanging)
    widget_failed = widget_open.to(error) | token_ready.to(error)
    widget_cancelled = widget_open.to(idle) | token_ready.to(idle)

    exchange_succeeded = exchanging.to(linked)
    exchange_failed = exchanging.to(error)
    rearm = linked.to(idle)

    abandon = (
        token_requested.to(idle)
        | token_ready.to(idle)
        | widget_open.to(idle)
        | exchanging.to(idle)
        | linked.to(idle)
        | error.to(idle)
    )

    def in_state(self, *state_ids: str) -> bool:
        return self.current_state.id in state_ids

    def fail(self, error_code: str, error_message: str):
        """
        Trigger failure from the current in-flight state.

        Args:
            error_code: Error code for categorization
            error_message: Human-readable error message
        """
        self.error_code = error_code
        self.error_message = error_message

        current = self.current_state.id
        if current == "token_requested":
            self.token_failed()
        elif current == "exchanging":
            self.exchange_failed()
        elif current in ("token_ready", "widget_open"):
            self.widget_failed()
        else:
            logger.warning(
                "fail_from_unexpected_state",
                state=current,
                error_code=error_code,
                user_id=self.user_id,
            )

    def on_enter_idle(self):
        """Action: a fresh attempt starts without a stale error."""
        self.error_code = None
        self.error_message = None

    def on_enter_error(self):
        """Action: Log the failure that ended this attempt."""
        logger.warning(
            "link_attempt_failed",
            error_code=self.error_code or "UNKNOWN_ERROR",
            error_message=self.error_message,
            user_id=self.user_id,
            mode=self.context.get("mode"),
        )

    def on_enter_linked(self):
        """Action: Log the completed link."""
        logger.info(
            "link_attempt_completed",
            user_id=self.user_id,
            item_id=self.context.get("item_id"),
            mode=self.context.get("mode"),
        )
