"""
Append-only log of price computations.

Entries are never updated. They leave the log only through an explicit
per-id delete, a per-product delete or a full per-user wipe.
"""

from typing import Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from models.records import PriceHistoryRecord
from utils.exceptions import ValidationError
from utils.logging import get_logger
from utils.validation import check_id_length


logger = get_logger(__name__)


def new_history_id() -> str:
    return f"{uuid4()}_hist"


class PriceHistoryLog:
    """가격 이력 로그 (추가 전용)"""

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self._id_factory = id_factory or new_history_id
        self._entries: Dict[str, PriceHistoryRecord] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, history_id: str) -> bool:
        return history_id in self._entries

    def next_id(self) -> str:
        return self._id_factory()

    def append(self, entry: PriceHistoryRecord) -> PriceHistoryRecord:
        """항목 추가 (ID 가 없으면 생성, 기존 ID 는 거부)"""
        if not entry.id:
            entry.id = self.next_id()
        check_id_length(entry.id)

        if entry.id in self._entries:
            raise ValidationError(f"price history {entry.id} already exists", field="id", record_id=entry.id)

        self._counter += 1
        self._entries[entry.id] = entry
        self._sequence[entry.id] = self._counter
        return entry

    def extend(self, entries: Iterable[PriceHistoryRecord]) -> int:
        count = 0
        for entry in entries:
            self.append(entry)
            count += 1
        return count

    def get(self, history_id: str, user_id: str) -> Optional[PriceHistoryRecord]:
        entry = self._entries.get(history_id)
        if entry is None or entry.user_id != user_id:
            return None
        return entry

    def query(self, user_id: str, product_id: Optional[str] = None,
              skip: int = 0, limit: int = 100) -> List[PriceHistoryRecord]:
        """이력 조회 (최신순, 같은 시각이면 나중에 추가된 것 먼저)"""
        matched = [
            entry for entry in self._entries.values()
            if entry.user_id == user_id and (product_id is None or entry.product_id == product_id)
        ]
        matched.sort(key=lambda entry: (entry.timestamp, self._sequence[entry.id]), reverse=True)
        return matched[skip:skip + limit]

    def records(self, user_id: Optional[str] = None) -> List[PriceHistoryRecord]:
        """추가 순서대로 전체 항목"""
        return [entry for entry in self._entries.values() if user_id is None or entry.user_id == user_id]

    def _remove(self, history_ids: List[str]) -> int:
        for history_id in history_ids:
            del self._entries[history_id]
            del self._sequence[history_id]
        return len(history_ids)

    def delete(self, history_id: str, user_id: str) -> bool:
        if self.get(history_id, user_id) is None:
            return False
        return self._remove([history_id]) == 1

    def delete_by_product_id(self, product_id: str, user_id: str) -> int:
        """상품에 딸린 이력 일괄 삭제"""
        doomed = [
            entry.id for entry in self._entries.values()
            if entry.product_id == product_id and entry.user_id == user_id
        ]
        return self._remove(doomed)

    def delete_all(self, user_id: str) -> int:
        doomed = [entry.id for entry in self._entries.values() if entry.user_id == user_id]
        count = self._remove(doomed)
        logger.info(f"Deleted {count} price history entries for user {user_id}")
        return count
