"""Optimistic local mutation with snapshot rollback.

A mutation is applied to the local list first, then the request runs.
On success the placeholder (or edited item) is replaced by the server's
copy; on failure the list goes back to the snapshot taken before the
mutation. Overlapping mutations are last-writer-wins.
"""

import copy
import itertools
from collections.abc import Callable
from typing import Any

import httpx

from scaaf.client.api import ScaafApiError

Item = dict[str, Any]


class OptimisticList:
    """A list of API items (dicts keyed by "id") with optimistic edits."""

    def __init__(self, items: list[Item] | None = None):
        self.items: list[Item] = list(items or [])
        self._counter = itertools.count(1)
        self._pending: dict[str, tuple[list[Item], str]] = {}

    def _begin(self, item_id: str) -> str:
        token = f"op-{next(self._counter)}"
        self._pending[token] = (copy.deepcopy(self.items), item_id)
        return token

    def find(self, item_id: str) -> Item | None:
        return next((i for i in self.items if str(i["id"]) == str(item_id)), None)

    def apply_insert(self, kind: str, item: Item, at_start: bool = True) -> str:
        """Insert a placeholder with id temp-<kind>-<n>; returns the mutation token."""
        temp_id = f"temp-{kind}-{next(self._counter)}"
        token = self._begin(temp_id)
        placeholder = {**item, "id": temp_id, "pending": True}
        if at_start:
            self.items.insert(0, placeholder)
        else:
            self.items.append(placeholder)
        return token

    def apply_update(self, item_id: str, changes: Item) -> str:
        token = self._begin(str(item_id))
        self.items = [
            {**i, **changes} if str(i["id"]) == str(item_id) else i for i in self.items
        ]
        return token

    def apply_remove(self, item_id: str) -> str:
        token = self._begin(str(item_id))
        self.items = [i for i in self.items if str(i["id"]) != str(item_id)]
        return token

    def placeholder_id(self, token: str) -> str:
        return self._pending[token][1]

    def commit(self, token: str, confirmed: Item | None = None) -> None:
        """Accept the mutation; confirmed replaces the local copy when given."""
        _, item_id = self._pending.pop(token)
        if confirmed is None:
            return
        self.items = [confirmed if str(i["id"]) == item_id else i for i in self.items]

    def rollback(self, token: str) -> None:
        """Restore the list as it was before the mutation."""
        snapshot, _ = self._pending.pop(token)
        self.items = snapshot

    def mutate(self, apply: Callable[[], str], request: Callable[[], Any]) -> Any:
        """Apply locally, run the request, then commit or roll back.

        A dict result is taken as the server's copy of the item. Request
        failures are re-raised after the rollback.
        """
        token = apply()
        try:
            result = request()
        except (ScaafApiError, httpx.HTTPError):
            self.rollback(token)
            raise
        self.commit(token, result if isinstance(result, dict) else None)
        return result


def toggle_reaction_locally(reactions: list[Item], emoji: str) -> list[Item]:
    """The reaction aggregate after the viewer toggles emoji.

    Absent emoji is added with count 1; a reacted one loses the viewer's
    vote and disappears at zero; an unreacted one gains it.
    """
    updated: list[Item] = []
    found = False
    for reaction in reactions:
        if reaction["emoji"] != emoji:
            updated.append(dict(reaction))
            continue
        found = True
        if reaction["reacted"]:
            count = reaction["count"] - 1
            if count > 0:
                updated.append({"emoji": emoji, "count": count, "reacted": False})
        else:
            updated.append({"emoji": emoji, "count": reaction["count"] + 1, "reacted": True})
    if not found:
        updated.append({"emoji": emoji, "count": 1, "reacted": True})
    return updated
