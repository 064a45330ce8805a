"""
Application state record and its transition functions.

Every operation of the link flow reads one AppState and produces the next.
Transitions are pure: they never mutate their input and never touch the
network. AppStateHolder is the single place that swaps the current record.
"""

from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from pydantic import Field

from .schemas import (
    FlowState,
    FrozenModel,
    Item,
    LinkMode,
    LinkSession,
    Transaction,
    User,
)


class AppState(FrozenModel):
    users: Tuple[User, ...] = ()
    active_user_id: Optional[int] = None
    link: LinkSession = Field(default_factory=LinkSession)
    flow_state: FlowState = FlowState.IDLE
    items: Tuple[Item, ...] = ()
    transactions: Tuple[Transaction, ...] = ()
    loading: bool = False
    error_message: Optional[str] = None

    @property
    def active_user(self) -> Optional[User]:
        if self.active_user_id is None:
            return None
        return self.find_user(self.active_user_id)

    def find_user(self, user_id: int) -> Optional[User]:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def find_item(self, item_id: str) -> Optional[Item]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


Transition = Callable[..., AppState]


# Users
def add_user(state: AppState, user: User) -> AppState:
    """Add user to the known set unless its id is already there."""
    if state.find_user(user.id) is not None:
        return state
    return state.model_copy(update={"users": state.users + (user,)})


def activate_user(state: AppState, user_id: int) -> AppState:
    if state.active_user_id == user_id:
        return state
    # Transactions belong to the previous user's view
    return state.model_copy(update={"active_user_id": user_id, "transactions": ()})


# Link session
def set_link_mode(state: AppState, mode: LinkMode) -> AppState:
    update: Dict[str, Any] = {"mode": mode}
    if mode == LinkMode.NORMAL:
        update["selected_item_id"] = None
    return state.model_copy(update={"link": state.link.model_copy(update=update)})


def select_link_item(state: AppState, item_id: Optional[str]) -> AppState:
    link = state.link.model_copy(update={"selected_item_id": item_id})
    return state.model_copy(update={"link": link})


def set_link_token(state: AppState, token: str) -> AppState:
    link = state.link.model_copy(update={"token": token})
    return state.model_copy(update={"link": link})


def clear_link_token(state: AppState) -> AppState:
    link = state.link.model_copy(update={"token": None})
    return state.model_copy(update={"link": link})


def set_flow_state(state: AppState, flow_state: FlowState) -> AppState:
    return state.model_copy(update={"flow_state": flow_state})


# Items
def upsert_item(state: AppState, item: Item) -> AppState:
    """
    Record an item under the id the backend returned.

    A repeated id replaces the earlier entry in place; a new id is appended.
    Items are never merged by institution.
    """
    items = list(state.items)
    for index, existing in enumerate(items):
        if existing.id == item.id:
            items[index] = item
            break
    else:
        items.append(item)
    return state.model_copy(update={"items": tuple(items)})


def reset_link_session(state: AppState) -> AppState:
    """Back to normal mode with no token and no selected item."""
    return state.model_copy(update={"link": LinkSession()})


# Transactions
def set_transactions(state: AppState, transactions: Iterable[Transaction]) -> AppState:
    return state.model_copy(update={"transactions": tuple(transactions)})


def clear_transactions(state: AppState) -> AppState:
    return state.model_copy(update={"transactions": ()})


# Operation status
def begin_operation(state: AppState) -> AppState:
    return state.model_copy(update={"loading": True, "error_message": None})


def fail_operation(state: AppState, message: str) -> AppState:
    return state.model_copy(update={"error_message": message})


def end_operation(state: AppState) -> AppState:
    return state.model_copy(update={"loading": False})


def clear_error(state: AppState) -> AppState:
    return state.model_copy(update={"error_message": None})


class AppStateHolder:
    """Holds the current AppState and applies transitions to it."""

    def __init__(self, state: Optional[AppState] = None):
        self._state = state or AppState()

    @property
    def current(self) -> AppState:
        return self._state

    def apply(self, transition: Transition, *args, **kwargs) -> AppState:
        self._state = transition(self._state, *args, **kwargs)
        return self._state

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe dump of the current record"""
        return self._state.model_dump(mode="json")
