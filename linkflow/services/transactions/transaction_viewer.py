"""
Transaction viewer for the active user.

Fetched on demand; the current list lives on the app state only until the
next fetch, clear(), or a switch of the active user.
"""

from typing import List, Optional

import structlog

from linkflow.core.decorators import tracks_operation
from linkflow.core.exceptions import BackendError, NoActiveUserError, TransactionFetchError
from linkflow.domain.schemas import Transaction, User
from linkflow.domain.state import AppStateHolder, clear_transactions, set_transactions
from linkflow.infrastructure.contracts import BackendTransport
from linkflow.services.linking.session_store import SessionStore

logger = structlog.get_logger(__name__)


class TransactionViewer:
    """Loads transaction history; amounts keep the backend's sign."""

    def __init__(self, sessions: SessionStore, backend: BackendTransport, state: AppStateHolder):
        self.sessions = sessions
        self.backend = backend
        self.state = state

    @property
    def transactions(self) -> List[Transaction]:
        return list(self.state.current.transactions)

    @tracks_operation("fetch_transactions")
    async def fetch_transactions(self, user: Optional[User] = None) -> List[Transaction]:
        """
        Fetch every transaction of the user from the backend.

        Args:
            user: Defaults to the active user

        Returns:
            Transactions as sent by the backend; empty when there are none

        Raises:
            NoActiveUserError: If no user is given or active
            TransactionFetchError: If the backend call fails
        """
        if user is None:
            user = self.sessions.active_user
        if user is None:
            raise NoActiveUserError()

        try:
            response = await self.backend.get_user_transactions(user.id)
        except BackendError as e:
            raise TransactionFetchError(
                f"Failed to get transactions: {e.message}",
                details={"user_id": user.id, "cause": e.message},
            ) from e

        transactions = list(response.transactions)
        self.state.apply(set_transactions, transactions)
        logger.info(
            "transactions_fetched",
            user_id=user.id,
            count=len(transactions),
            pending=sum(1 for t in transactions if t.pending),
        )
        return transactions

    def clear(self) -> None:
        self.state.apply(clear_transactions)
