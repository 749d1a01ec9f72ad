"""
Remote store boundary for reconciliation.

``SyncExecutor`` reads full remote snapshots (paged up to a ceiling) and
applies a reconciliation plan one record at a time. Every write runs in its
own session, so a failed record is rolled back alone and never undoes
records written before it. Read failures are fatal to the caller.
"""

import time
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from models.base import EntityType
from models.records import ConfigEntry, PricedRecord
from storage.repositories import AppConfigRepository, PriceHistoryRepository, ProductRepository
from sync.reconciliation import IssueKind, PlannedAction, SyncAction
from utils.exceptions import RepositoryUnavailable
from utils.logging import get_logger, log_record_failure


logger = get_logger(__name__)

SessionScope = Callable[[], AbstractContextManager]

REPOSITORIES = {
    EntityType.PRODUCT: ProductRepository,
    EntityType.PRICE_HISTORY: PriceHistoryRepository,
}


@dataclass
class RecordFailure:
    """레코드 단위 실패"""

    entity_type: EntityType
    record_id: Optional[str]
    error: str
    error_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type.value,
            "id": self.record_id,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class EntitySyncResult:
    """엔티티별 동기화 집계"""

    entity_type: EntityType
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[RecordFailure] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    written_ids: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + self.failed

    def record_failure(self, record_id: Optional[str], error: str, error_type: str) -> None:
        self.failed += 1
        self.failures.append(RecordFailure(self.entity_type, record_id, error, error_type))

    def counts(self) -> Dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "total": self.total,
        }

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = self.counts()
        data["failures"] = [failure.to_dict() for failure in self.failures]
        if self.conflicts:
            data["identity_conflicts"] = list(self.conflicts)
        return data


class SyncExecutor:
    """원격 저장소 읽기/쓰기 경계"""

    def __init__(self, session_scope: SessionScope, fetch_limit: Optional[int] = None,
                 page_size: Optional[int] = None):
        self.session_scope = session_scope
        self.fetch_limit = fetch_limit or settings.sync.fetch_limit
        self.page_size = min(page_size or settings.sync.page_size, self.fetch_limit)

    def fetch_all(self, user_id: str, entity_type: EntityType) -> List[PricedRecord]:
        """사용자의 전체 원격 레코드 조회 (상한까지 페이지 단위)"""
        repository_cls = REPOSITORIES[entity_type]
        records: List[PricedRecord] = []

        try:
            with self.session_scope() as session:
                repository = repository_cls(session)
                while len(records) < self.fetch_limit:
                    limit = min(self.page_size, self.fetch_limit - len(records))
                    page = repository.list(user_id, skip=len(records), limit=limit)
                    records.extend(page)
                    if len(page) < limit:
                        break
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch {entity_type.value} records for user {user_id}: {e}")
            raise RepositoryUnavailable(
                f"Cannot read {entity_type.value} records from the remote store",
                context={"user_id": user_id, "entity_type": entity_type.value, "cause": str(e)}
            ) from e

        if len(records) >= self.fetch_limit:
            logger.warning(
                f"Fetched {len(records)} {entity_type.value} records for user {user_id}, "
                f"reached fetch limit {self.fetch_limit}; remote snapshot may be incomplete"
            )
        return records

    def fetch_configs(self, user_id: str) -> Dict[str, ConfigEntry]:
        try:
            with self.session_scope() as session:
                entries = AppConfigRepository(session).get_all_configs(user_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch configs for user {user_id}: {e}")
            raise RepositoryUnavailable(
                "Cannot read configs from the remote store",
                context={"user_id": user_id, "cause": str(e)}
            ) from e
        return {entry.key: entry for entry in entries}

    def upsert(self, user_id: str, entity_type: EntityType, record: PricedRecord,
               action: SyncAction) -> PricedRecord:
        """단일 레코드 생성/갱신 (자체 세션)"""
        with self.session_scope() as session:
            repository = REPOSITORIES[entity_type](session)
            if action is SyncAction.CREATE:
                return repository.create(user_id, record)

            if entity_type is EntityType.PRICE_HISTORY:
                raise ValueError("price history is append-only and cannot be updated")

            updated = repository.update(record.id, user_id, record)
            if updated is None:
                # 계획 이후 원격에서 사라진 경우
                return repository.create(user_id, record)
            return updated

    def apply(self, user_id: str, entity_type: EntityType,
              plan: Iterable[PlannedAction]) -> EntitySyncResult:
        """계획 실행. 레코드 하나의 실패는 나머지 처리에 영향을 주지 않음"""
        result = EntitySyncResult(entity_type)

        for planned in plan:
            if planned.action is SyncAction.REJECT:
                result.record_failure(planned.record_id, planned.error or "rejected", "ValidationError")
                logger.warning(f"Rejected {entity_type.value} {planned.record_id}: {planned.error}")
                continue

            if planned.action is SyncAction.SKIP:
                result.skipped += 1
                if planned.issue is IssueKind.IDENTITY_CONFLICT:
                    result.conflicts.append(planned.record_id)
                continue

            try:
                self.upsert(user_id, entity_type, planned.record, planned.action)
            except Exception as e:
                log_record_failure(entity_type.value, planned.record_id, e)
                result.record_failure(planned.record_id, str(e), type(e).__name__)
                continue

            result.written_ids.append(planned.record_id)
            if planned.action is SyncAction.CREATE:
                result.created += 1
            else:
                result.updated += 1

        return result

    def push_configs(self, user_id: str, configs: Dict[str, Any]) -> int:
        """설정 upsert (실패는 로그만 남김)"""
        pushed = 0
        for key, value in configs.items():
            try:
                with self.session_scope() as session:
                    AppConfigRepository(session).set_config(user_id, key, value)
                pushed += 1
            except SQLAlchemyError as e:
                logger.error(f"Failed to sync config {key} for user {user_id}: {e}")
        return pushed

    def delete_all(self, user_id: str, entity_type: EntityType) -> int:
        with self.session_scope() as session:
            return REPOSITORIES[entity_type](session).delete_all(user_id)

    def clear_user(self, user_id: str) -> Dict[str, int]:
        """사용자 데이터 전체 삭제 (단일 트랜잭션)"""
        started = time.time()
        with self.session_scope() as session:
            counts = {
                "price_history": PriceHistoryRepository(session).delete_all(user_id),
                "products": ProductRepository(session).delete_all(user_id),
                "configs": AppConfigRepository(session).delete_all(user_id),
            }
        logger.info(f"Cleared remote data for user {user_id} in {time.time() - started:.2f}s: {counts}")
        return counts
