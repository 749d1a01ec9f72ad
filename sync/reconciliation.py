"""
Local/remote reconciliation.

The engine is pure: it never reads or writes a store. Given the ids and
records a client holds (local) and the records the server holds (remote),
it partitions ids, classifies the pair, plans create/update/skip actions for
a sync run, and explains ids that are still missing after one.

Partitions for local ids L and remote ids R:

    both           = L & R
    missing_remote = L - R   (to be pushed)
    missing_local  = R - L   (informational, never pulled)

Classification, first match wins: both-empty, local-ahead, remote-ahead,
fully-matched.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from config.settings import settings
from models.base import EntityType
from models.product import NUMERIC_PRECISION
from models.records import DATE_FIELDS, PricedRecord
from utils.exceptions import ValidationError
from utils.logging import get_logger
from utils.validation import (
    ensure_utc, missing_fields, normalize_history, normalize_product, raw_record_id
)


logger = get_logger(__name__)


class ReconcileMode(str, Enum):
    """대조 모드"""
    VERIFY = "verify"
    SYNC = "sync"


class SyncStatus(str, Enum):
    """엔티티별 대조 상태"""
    BOTH_EMPTY = "both-empty"
    LOCAL_AHEAD = "local-ahead"
    REMOTE_AHEAD = "remote-ahead"
    FULLY_MATCHED = "fully-matched"


class SyncAction(str, Enum):
    """레코드별 동기화 동작"""
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    REJECT = "reject"


class IssueKind(str, Enum):
    """진단 분류 (예외가 아니라 보고용)"""
    LIKELY_TRUNCATED = "likely-truncated"
    NOT_FOUND = "not-found"
    MISSING_PRODUCT = "missing-product"
    DUPLICATE_ID = "duplicate-id"
    IDENTITY_CONFLICT = "identity-conflict"
    MISSING_LOCAL_RECORD = "missing-local-record"


@dataclass
class IdPartition:
    """로컬/원격 ID 분할 결과"""

    both: List[str] = field(default_factory=list)
    missing_remote: List[str] = field(default_factory=list)
    missing_local: List[str] = field(default_factory=list)

    @property
    def local_count(self) -> int:
        return len(self.both) + len(self.missing_remote)

    @property
    def remote_count(self) -> int:
        return len(self.both) + len(self.missing_local)

    def counts(self) -> Dict[str, int]:
        return {
            "local_count": self.local_count,
            "remote_count": self.remote_count,
            "both": len(self.both),
            "missing_remote": len(self.missing_remote),
            "missing_local": len(self.missing_local),
        }


@dataclass
class PlannedAction:
    """동기화 계획의 한 항목"""

    action: SyncAction
    entity_type: EntityType
    record_id: Optional[str]
    record: Optional[PricedRecord] = None
    error: Optional[str] = None
    issue: Optional[IssueKind] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"action": self.action.value, "entity_type": self.entity_type.value, "id": self.record_id}
        if self.error:
            data["error"] = self.error
        if self.issue:
            data["issue"] = self.issue.value
        return data


@dataclass
class MissingDiagnosis:
    """원격에 없는 ID 하나에 대한 진단"""

    record_id: str
    issues: List[IssueKind] = field(default_factory=list)
    truncated_id: Optional[str] = None
    product_id: Optional[str] = None
    product_code: Optional[str] = None
    duplicate_count: int = 0

    @property
    def length(self) -> int:
        return len(self.record_id)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.record_id,
            "length": self.length,
            "issues": [issue.value for issue in self.issues],
        }
        if self.truncated_id is not None:
            data["truncated_id"] = self.truncated_id
        if self.product_id is not None:
            data["product_id"] = self.product_id
        if self.product_code is not None:
            data["product_code"] = self.product_code
        if self.duplicate_count:
            data["duplicate_count"] = self.duplicate_count
        return data


@dataclass
class DiagnosticReport:
    """누락 ID 진단 보고서 (데이터는 변경하지 않음)"""

    entity_type: EntityType
    diagnoses: List[MissingDiagnosis] = field(default_factory=list)

    def length_distribution(self) -> Dict[int, int]:
        return dict(sorted(Counter(d.length for d in self.diagnoses).items()))

    def summary(self) -> Dict[str, int]:
        counts = Counter(issue.value for d in self.diagnoses for issue in d.issues)
        return {kind.value: counts.get(kind.value, 0) for kind in IssueKind if counts.get(kind.value)}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type.value,
            "missing_count": len(self.diagnoses),
            "length_distribution": self.length_distribution(),
            "summary": self.summary(),
            "diagnoses": [d.to_dict() for d in self.diagnoses],
        }


def _scaled(name: str, value: Any) -> Any:
    """컬럼 scale 기준으로 비교 가능한 값"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        scale = NUMERIC_PRECISION.get(name, (12, 2))[1]
        return Decimal(repr(float(value))).quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)
    return value


def same_content(local: PricedRecord, remote: PricedRecord) -> bool:
    """식별 필드를 제외한 내용 비교"""
    local_content = local.content()
    remote_content = remote.content()
    for name, value in local_content.items():
        if _scaled(name, value) != _scaled(name, remote_content.get(name)):
            return False
    return True


class ReconciliationEngine:
    """로컬/원격 레코드 대조 엔진"""

    NORMALIZERS: Dict[EntityType, Callable[[Any], PricedRecord]] = {
        EntityType.PRODUCT: normalize_product,
        EntityType.PRICE_HISTORY: normalize_history,
    }

    def __init__(self, truncated_id_length: Optional[int] = None):
        self.truncated_id_length = truncated_id_length or settings.sync.truncated_id_length

    def partition(self, local_ids: Iterable[str], remote_ids: Iterable[str]) -> IdPartition:
        """ID 집합 분할 (입력 순서 유지, 중복 제거)"""
        local = list(dict.fromkeys(local_ids))
        remote = list(dict.fromkeys(remote_ids))
        local_set = set(local)
        remote_set = set(remote)

        return IdPartition(
            both=[record_id for record_id in local if record_id in remote_set],
            missing_remote=[record_id for record_id in local if record_id not in remote_set],
            missing_local=[record_id for record_id in remote if record_id not in local_set],
        )

    @staticmethod
    def classify(partition: IdPartition) -> SyncStatus:
        if partition.local_count == 0 and partition.remote_count == 0:
            return SyncStatus.BOTH_EMPTY
        if partition.missing_remote:
            return SyncStatus.LOCAL_AHEAD
        if partition.missing_local:
            return SyncStatus.REMOTE_AHEAD
        return SyncStatus.FULLY_MATCHED

    def _accept(self, entity_type: EntityType,
                raws: Iterable[Any]) -> Tuple[List[Tuple[Any, PricedRecord]], List[PlannedAction]]:
        normalizer = self.NORMALIZERS[entity_type]
        accepted: List[Tuple[Any, PricedRecord]] = []
        rejected: List[PlannedAction] = []
        seen: Set[str] = set()

        for raw in raws:
            try:
                record = normalizer(raw)
            except ValidationError as e:
                rejected.append(PlannedAction(
                    SyncAction.REJECT, entity_type, raw_record_id(raw), error=e.message
                ))
                continue

            if record.id in seen:
                rejected.append(PlannedAction(
                    SyncAction.REJECT, entity_type, record.id,
                    error=f"duplicate local id {record.id}", issue=IssueKind.DUPLICATE_ID
                ))
                continue

            seen.add(record.id)
            accepted.append((raw, record))

        return accepted, rejected

    def normalize(self, entity_type: EntityType,
                  raws: Iterable[Any]) -> Tuple[List[PricedRecord], List[PlannedAction]]:
        """
        로컬 레코드 정규화

        정규화에 실패하거나 앞서 나온 ID 와 겹치는 레코드는 REJECT 항목으로
        돌려준다. 같은 ID 는 처음 나온 것만 처리한다.
        """
        accepted, rejected = self._accept(entity_type, raws)
        return [record for _, record in accepted], rejected

    @staticmethod
    def _adopt_remote_dates(raw: Any, record: PricedRecord, remote: PricedRecord) -> None:
        """로컬에 없어 현재 시각으로 채운 날짜는 원격 값을 따른다"""
        for name in missing_fields(raw, DATE_FIELDS):
            setattr(record, name, getattr(remote, name))

    def plan_products(self, local_raws: Iterable[Any],
                      remote_records: Iterable[PricedRecord]) -> List[PlannedAction]:
        """상품 동기화 계획: 원격에 없으면 생성, 내용이 다르면 갱신, 같으면 건너뜀"""
        remote_by_id = {record.id: record for record in remote_records}
        accepted, plan = self._accept(EntityType.PRODUCT, local_raws)

        for raw, record in accepted:
            remote = remote_by_id.get(record.id)
            if remote is not None:
                self._adopt_remote_dates(raw, record, remote)

            if remote is None:
                action = SyncAction.CREATE
            elif same_content(record, remote):
                action = SyncAction.SKIP
            else:
                action = SyncAction.UPDATE
            plan.append(PlannedAction(action, EntityType.PRODUCT, record.id, record=record))

        return plan

    def plan_history(self, local_raws: Iterable[Any],
                     remote_records: Iterable[PricedRecord]) -> List[PlannedAction]:
        """이력 동기화 계획: 생성만 하며 기존 행은 절대 갱신하지 않음"""
        remote_by_id = {record.id: record for record in remote_records}
        accepted, plan = self._accept(EntityType.PRICE_HISTORY, local_raws)

        for raw, record in accepted:
            remote = remote_by_id.get(record.id)
            if remote is not None:
                self._adopt_remote_dates(raw, record, remote)

            if remote is None:
                plan.append(PlannedAction(SyncAction.CREATE, EntityType.PRICE_HISTORY, record.id, record=record))
            elif same_content(record, remote):
                plan.append(PlannedAction(SyncAction.SKIP, EntityType.PRICE_HISTORY, record.id, record=record))
            else:
                logger.warning(f"Price history {record.id} exists remotely with different content")
                plan.append(PlannedAction(
                    SyncAction.SKIP, EntityType.PRICE_HISTORY, record.id, record=record,
                    issue=IssueKind.IDENTITY_CONFLICT
                ))

        return plan

    def truncated(self, record_id: str) -> Optional[str]:
        """잘린 형태의 ID (ID 가 더 길 때만)"""
        if len(record_id) <= self.truncated_id_length:
            return None
        return record_id[:self.truncated_id_length]

    def analyze_missing(self, entity_type: EntityType, missing_ids: Iterable[str],
                        remote_ids: Iterable[str]) -> DiagnosticReport:
        """원격에 없는 ID 마다 잘린 ID 존재 여부 확인"""
        remote = set(remote_ids)
        report = DiagnosticReport(entity_type)

        for record_id in missing_ids:
            truncated = self.truncated(record_id)
            diagnosis = MissingDiagnosis(record_id)
            if truncated is not None and truncated in remote:
                diagnosis.issues.append(IssueKind.LIKELY_TRUNCATED)
                diagnosis.truncated_id = truncated
            else:
                diagnosis.issues.append(IssueKind.NOT_FOUND)
            report.diagnoses.append(diagnosis)

        return report

    def diagnose_failed(self, missing_ids: Iterable[str], local_history: Iterable[Any],
                        remote_product_ids: Iterable[str],
                        remote_history_ids: Iterable[str]) -> DiagnosticReport:
        """동기화 후에도 원격에 없는 이력 ID 의 원인 분류 (여러 원인 동시 가능)"""
        remote_products = set(remote_product_ids)
        remote_history = set(remote_history_ids)

        local_by_id: Dict[str, List[Any]] = {}
        for raw in local_history:
            record_id = raw_record_id(raw)
            if record_id:
                local_by_id.setdefault(record_id, []).append(raw)

        report = DiagnosticReport(EntityType.PRICE_HISTORY)
        for record_id in missing_ids:
            diagnosis = MissingDiagnosis(record_id)
            copies = local_by_id.get(record_id, [])

            if not copies:
                diagnosis.issues.append(IssueKind.MISSING_LOCAL_RECORD)
                report.diagnoses.append(diagnosis)
                continue

            first = copies[0]
            diagnosis.product_id = _raw_value(first, "product_id", "productId")
            diagnosis.product_code = _raw_value(first, "product_code", "productCode")

            if diagnosis.product_id not in remote_products:
                diagnosis.issues.append(IssueKind.MISSING_PRODUCT)

            truncated = self.truncated(record_id)
            if truncated is not None and truncated in remote_history and record_id not in remote_history:
                diagnosis.issues.append(IssueKind.LIKELY_TRUNCATED)
                diagnosis.truncated_id = truncated

            if len(copies) > 1:
                diagnosis.issues.append(IssueKind.DUPLICATE_ID)
                diagnosis.duplicate_count = len(copies)

            report.diagnoses.append(diagnosis)

        return report


def _raw_value(raw: Any, name: str, camel: str) -> Optional[str]:
    if isinstance(raw, PricedRecord):
        value = getattr(raw, name, None)
    else:
        value = raw.get(name, raw.get(camel))
    return str(value) if value else None
