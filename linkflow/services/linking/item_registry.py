"""
Item registry: institutions and accounts linked by successful exchanges.
"""

from typing import Optional, Tuple

import structlog

from linkflow.core.config import settings
from linkflow.core.decorators import tracks_operation
from linkflow.core.exceptions import BackendError, ExternalServiceError, ItemSelectionError
from linkflow.domain.schemas import Item, User
from linkflow.domain.state import AppStateHolder, upsert_item
from linkflow.infrastructure.contracts import BackendTransport

logger = structlog.get_logger(__name__)


class ItemRegistry:
    """Ordered, id-keyed record of linked items."""

    def __init__(self, state: AppStateHolder, backend: Optional[BackendTransport] = None):
        self.state = state
        self.backend = backend

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and self.get_item(item_id) is not None

    def __len__(self) -> int:
        return len(self.state.current.items)

    @property
    def has_items(self) -> bool:
        return bool(self.state.current.items)

    def add_item(self, item: Item) -> Item:
        """
        Record an item returned by an exchange.

        Never merges by institution. An id already present is replaced in
        place (update-mode re-link of the same item); a new id is appended.
        """
        replacing = item.id in self
        self.state.apply(upsert_item, item)
        logger.info(
            "item_recorded",
            item_id=item.id,
            institution=item.institution,
            account_count=len(item.accounts),
            replaced=replacing,
        )
        return item

    def list_items(self) -> Tuple[Item, ...]:
        """Items in insertion order."""
        return self.state.current.items

    def get_item(self, item_id: str) -> Optional[Item]:
        return self.state.current.find_item(item_id)

    @tracks_operation("load_user_items")
    async def load_user_items(self, user: User) -> Tuple[Item, ...]:
        """
        Pull the user's items from the backend and register unknown ones.

        Items already registered keep their local record.
        """
        backend = self._require_backend()
        try:
            rows = await backend.get_user_items(user.id)
        except BackendError as e:
            raise ExternalServiceError(
                f"Failed to load items: {e.message}",
                details={"user_id": user.id, "cause": e.message},
            ) from e

        added = 0
        for row in rows:
            if row.id in self:
                continue
            self.state.apply(upsert_item, row.to_item(settings.unknown_institution_label))
            added += 1

        logger.info("user_items_loaded", user_id=user.id, fetched=len(rows), added=added)
        return self.list_items()

    @tracks_operation("load_item_accounts")
    async def load_item_accounts(self, item_id: str) -> Item:
        """Refresh the account list of one registered item."""
        item = self.get_item(item_id)
        if item is None:
            raise ItemSelectionError(
                f"Unknown item {item_id}", details={"item_id": item_id}
            )

        backend = self._require_backend()
        try:
            accounts = await backend.get_item_accounts(item_id)
        except BackendError as e:
            raise ExternalServiceError(
                f"Failed to load accounts: {e.message}",
                details={"item_id": item_id, "cause": e.message},
            ) from e

        updated = item.model_copy(update={"accounts": tuple(accounts)})
        self.state.apply(upsert_item, updated)
        logger.info("item_accounts_loaded", item_id=item_id, account_count=len(accounts))
        return updated

    def _require_backend(self) -> BackendTransport:
        if self.backend is None:
            raise ExternalServiceError("Item registry has no backend configured")
        return self.backend
