"""Row-sharded user x item interaction matrix.

Each user row and each item row is guarded by one of N stripe locks, so
writes to different rows proceed concurrently. A write holds its user
stripe and then its item stripe, always in that order; readers take one
stripe at a time and copy the row out, so they never observe a half-applied
update.
"""

import logging
import threading
from collections import defaultdict
from typing import Iterable, Iterator

from config import settings
from models.schemas.interactions import Interaction, InteractionType

logger = logging.getLogger(__name__)

BASE_WEIGHTS = {
    InteractionType.VIEW: 1.0,
    InteractionType.LIKE: 2.0,
    InteractionType.SAVE: 3.0,
    InteractionType.FEEDBACK: 4.0,
    InteractionType.APPLY: 5.0,
    InteractionType.SHARE: 3.0,
    InteractionType.COMMENT: 3.0,
}
MAX_DURATION_FACTOR = 2.0
DIRECT_SOURCE_BOOST = 1.2


def interaction_weight(interaction: Interaction) -> float:
    """Base weight by type, scaled by rating, dwell time and source."""
    weight = BASE_WEIGHTS[interaction.type]
    if interaction.rating is not None:
        weight *= interaction.rating / 5.0
    if interaction.duration_ms is not None:
        weight *= min(interaction.duration_ms / 60000.0, MAX_DURATION_FACTOR)
    if interaction.source == "direct":
        weight *= DIRECT_SOURCE_BOOST
    return weight


class InteractionMatrix:
    def __init__(self, stripes: int | None = None) -> None:
        n = stripes or settings.lock_stripes
        self._user_locks = [threading.Lock() for _ in range(n)]
        self._item_locks = [threading.Lock() for _ in range(n)]
        self._index_lock = threading.Lock()
        self._user_rows: dict[str, dict[str, float]] = {}
        self._item_rows: dict[str, dict[str, float]] = {}
        self._item_types: dict[str, str] = {}
        self._events = 0

    def _user_lock(self, user_id: str) -> threading.Lock:
        return self._user_locks[hash(user_id) % len(self._user_locks)]

    def _item_lock(self, item_id: str) -> threading.Lock:
        return self._item_locks[hash(item_id) % len(self._item_locks)]

    def _row(self, rows: dict[str, dict[str, float]], key: str) -> dict[str, float]:
        row = rows.get(key)
        if row is None:
            with self._index_lock:
                row = rows.setdefault(key, {})
        return row

    def record(self, interaction: Interaction) -> float:
        """Fold one interaction into the matrix. Returns the weight applied.

        A cell keeps the strongest signal seen for its user/item pair, so
        replaying an event log in any order rebuilds the same matrix.
        """
        weight = interaction.weight if interaction.weight is not None else interaction_weight(interaction)
        with self._user_lock(interaction.user_id):
            with self._item_lock(interaction.item_id):
                user_row = self._row(self._user_rows, interaction.user_id)
                item_row = self._row(self._item_rows, interaction.item_id)
                value = max(user_row.get(interaction.item_id, 0.0), weight)
                user_row[interaction.item_id] = value
                item_row[interaction.user_id] = value
                self._item_types[interaction.item_id] = interaction.item_type
        with self._index_lock:
            self._events += 1
        return weight

    def rebuild(self, events: Iterable[Interaction]) -> int:
        """Replace the matrix contents with the given event log."""
        self.clear()
        count = 0
        for event in events:
            self.record(event)
            count += 1
        logger.info("Interaction matrix rebuilt from %d events", count)
        return count

    def clear(self) -> None:
        with self._index_lock:
            self._user_rows = {}
            self._item_rows = {}
            self._item_types = {}
            self._events = 0

    def user_row(self, user_id: str) -> dict[str, float]:
        with self._user_lock(user_id):
            return dict(self._user_rows.get(user_id, {}))

    def item_row(self, item_id: str) -> dict[str, float]:
        with self._item_lock(item_id):
            return dict(self._item_rows.get(item_id, {}))

    def user_ids(self) -> list[str]:
        with self._index_lock:
            return list(self._user_rows)

    def item_ids(self, item_type: str | None = None) -> list[str]:
        with self._index_lock:
            if item_type is None:
                return list(self._item_rows)
            return [i for i in self._item_rows if self._item_types.get(i) == item_type]

    def item_type(self, item_id: str) -> str | None:
        return self._item_types.get(item_id)

    def interaction_count(self, user_id: str) -> int:
        """Distinct items the user has interacted with."""
        with self._user_lock(user_id):
            return len(self._user_rows.get(user_id, {}))

    @property
    def event_count(self) -> int:
        return self._events

    def cells(self) -> Iterator[tuple[str, str, float]]:
        """Snapshot of (user_id, item_id, weight), row by row."""
        for user_id in self.user_ids():
            for item_id, weight in self.user_row(user_id).items():
                yield user_id, item_id, weight

    def popularity(self, item_type: str | None = None) -> dict[str, float]:
        """Total interaction weight per item."""
        totals: dict[str, float] = defaultdict(float)
        for item_id in self.item_ids(item_type):
            totals[item_id] = sum(self.item_row(item_id).values())
        return dict(totals)
