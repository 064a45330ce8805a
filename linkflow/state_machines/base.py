"""
Base state machine class for all flow state machines.

Provides common functionality for transition logging and flow info retrieval.
"""

from typing import Any, Dict, List, Optional, Tuple

import structlog
from statemachine import State, StateMachine


class FlowMachine(StateMachine):
    """
    Base class for all flow state machines.

    Features:
    - Structured logging on every transition
    - Context dict mirrors the current state id
    - get_flow_info() for callers rendering the flow
    """

    def __init__(
        self,
        context: Optional[Dict[str, Any]] = None,
        user_id: Optional[int] = None,
        **kwargs
    ):
        """
        Initialize flow machine.

        Args:
            context: Mutable dict describing the attempt (mode, item id, ...)
            user_id: User ID for logging
            **kwargs: Additional context passed to StateMachine
        """
        self.context: Dict[str, Any] = context if context is not None else {}
        self.user_id = user_id
        self.logger = structlog.get_logger(__name__)
        self.error_code: Optional[str] = None
        self.error_message: Optional[str] = None
        self.history: List[Tuple[str, str, str]] = []
        super().__init__(**kwargs)
        self.context["state"] = self.current_state.id

    def get_flow_info(self) -> Dict[str, Any]:
        """
        Returns current state and error info.

        Returns:
            Dict with state, context, and error info
        """
        return {
            "state": self.current_state.id,
            "context": {k: v for k, v in self.context.items() if k != "state"},
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def log_transition(self, event: str, from_state: str, to_state: str):
        """
        Log state transition with structured logging.

        Args:
            event: Event name that triggered transition
            from_state: Previous state
            to_state: New state
        """
        self.logger.info(
            "state_transition",
            transition_event=event,
            from_state=from_state,
            to_state=to_state,
            user_id=self.user_id,
        )

    def after_transition(self, event: str, source: State, target: State):
        """Hook called after every transition."""
        self.log_transition(event, source.id, target.id)
        self.history.append((str(event), source.id, target.id))
        self.context["state"] = target.id
