"""Storage for linked provider items, their accounts and imported transactions."""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from finguard.errors import ItemNotFound, ValidationError
from finguard.models.provider import ProviderAccount
from finguard.models.records import LinkedItem
from finguard.storage.database import KeyValueStore
from finguard.utils.sanitize import sanitize_text
from finguard.utils.timestamp import utc_now

logger = logging.getLogger(__name__)


class ItemStore:
    """
    Per-user item registry on top of a key-value store.

    Keys:
        items:<user>                         list of linked item ids
        items:<user>:<item>                  LinkedItem document
        accounts:<user>:<item>               account documents by account id
        item_transactions:<user>:<item>      ids of transactions imported from the item
        transactions:<user>:<transaction>    transaction document
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_items: int = 100,
        max_accounts_per_item: int = 20,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.max_items = max_items
        self.max_accounts_per_item = max_accounts_per_item
        self._now = clock or utc_now

    def _item_ids(self, user_id: str) -> List[str]:
        return list(self.store.get(f"items:{user_id}") or [])

    def upsert_item(
        self,
        user_id: str,
        item_id: str,
        access_token: str,
        institution_id: Optional[str] = None,
    ) -> LinkedItem:
        """
        Link an item to a user, or refresh the token of an existing link.

        Raises:
            ValidationError: The user already has ``max_items`` linked items
        """
        existing = self.get_item(user_id, item_id)
        if existing is not None:
            item = existing.model_copy(update={
                "access_token": access_token,
                "institution_id": institution_id or existing.institution_id,
                "status": "good",
            })
        else:
            ids = self._item_ids(user_id)
            if len(ids) >= self.max_items:
                raise ValidationError([f"Linked item limit reached ({self.max_items} per user)"])
            item = LinkedItem(
                user_id=user_id,
                item_id=item_id,
                access_token=access_token,
                institution_id=institution_id,
            )
            ids.append(item_id)
            self.store.set(f"items:{user_id}", ids)

        self.store.set(f"items:{user_id}:{item_id}", item.model_dump(mode="json"))
        return item

    def get_item(self, user_id: str, item_id: str) -> Optional[LinkedItem]:
        raw = self.store.get(f"items:{user_id}:{item_id}")
        return LinkedItem(**raw) if raw else None

    def get_items(self, user_id: str, status: Optional[str] = "good") -> List[LinkedItem]:
        """Linked items for a user; ``status=None`` returns every item."""
        items = []
        for item_id in self._item_ids(user_id):
            item = self.get_item(user_id, item_id)
            if item is not None and (status is None or item.status == status):
                items.append(item)
        return items

    def update_item(self, user_id: str, item_id: str, **changes: Any) -> LinkedItem:
        item = self.get_item(user_id, item_id)
        if item is None:
            raise ItemNotFound(user_id, item_id)
        item = item.model_copy(update=changes)
        self.store.set(f"items:{user_id}:{item_id}", item.model_dump(mode="json"))
        return item

    def upsert_accounts(self, user_id: str, item_id: str, accounts: List[ProviderAccount]) -> int:
        """Store an item's accounts, keeping at most ``max_accounts_per_item``."""
        if len(accounts) > self.max_accounts_per_item:
            logger.warning(
                "Item %s returned %d accounts; keeping the first %d",
                item_id, len(accounts), self.max_accounts_per_item,
            )
            accounts = accounts[:self.max_accounts_per_item]

        updated_at = self._now().isoformat()
        documents = self.store.get(f"accounts:{user_id}:{item_id}") or {}
        for account in accounts:
            doc = account.model_dump(mode="json")
            doc["name"] = sanitize_text(account.name)
            if account.official_name:
                doc["official_name"] = sanitize_text(account.official_name)
            doc.update(user_id=user_id, item_id=item_id, updated_at=updated_at)
            documents[account.account_id] = doc
        self.store.set(f"accounts:{user_id}:{item_id}", documents)
        return len(accounts)

    def get_accounts(self, user_id: str, item_id: str) -> List[Dict[str, Any]]:
        documents = self.store.get(f"accounts:{user_id}:{item_id}") or {}
        return list(documents.values())

    def upsert_transaction(
        self,
        user_id: str,
        item_id: Optional[str],
        transaction_id: str,
        document: Dict[str, Any],
    ) -> None:
        """Write one imported transaction, indexing it under its item."""
        if item_id:
            document = {**document, "item_id": item_id}
            index_key = f"item_transactions:{user_id}:{item_id}"
            ids = self.store.get(index_key) or []
            if transaction_id not in ids:
                self.store.append(index_key, transaction_id)
        self.store.set(f"transactions:{user_id}:{transaction_id}", document)

    def remove_item(self, user_id: str, item_id: str) -> Dict[str, int]:
        """
        Unlink an item and delete everything imported through it.

        Returns:
            Counts of removed accounts and transactions

        Raises:
            ItemNotFound: The user has no such item
        """
        ids = self._item_ids(user_id)
        if item_id not in ids and self.get_item(user_id, item_id) is None:
            raise ItemNotFound(user_id, item_id)

        transaction_ids = self.store.get(f"item_transactions:{user_id}:{item_id}") or []
        for transaction_id in transaction_ids:
            self.store.delete(f"transactions:{user_id}:{transaction_id}")
        accounts = self.store.get(f"accounts:{user_id}:{item_id}") or {}

        self.store.delete(f"item_transactions:{user_id}:{item_id}")
        self.store.delete(f"accounts:{user_id}:{item_id}")
        self.store.delete(f"items:{user_id}:{item_id}")
        self.store.set(f"items:{user_id}", [i for i in ids if i != item_id])

        logger.info(
            "Removed item %s for %s (%d accounts, %d transactions)",
            item_id, user_id, len(accounts), len(transaction_ids),
        )
        return {"accounts": len(accounts), "transactions": len(transaction_ids)}
