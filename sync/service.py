"""
Reconciliation entry points used by calling layers.

``SyncService.reconcile`` fetches the remote snapshot, compares it with the
local snapshot and, in sync mode, pushes what the remote store lacks. The
returned ``ReconciliationReport`` always carries a machine-checkable status
and created/updated/skipped/failed counts.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from config.settings import settings
from models.base import EntityType
from models.records import CurrentUser, LocalSnapshot, PricedRecord, utcnow
from pricing.coefficients import SYNCED_CONFIG_KEYS
from sync.executor import EntitySyncResult, SyncExecutor
from sync.reconciliation import (
    DiagnosticReport, IdPartition, ReconcileMode, ReconciliationEngine, SyncStatus
)
from utils.exceptions import AuthenticationError, PartialSyncFailure
from utils.logging import get_logger, log_reconcile_status, log_sync_result, log_sync_start
from utils.validation import data_validator, raw_record_id


logger = get_logger(__name__)


class ReportStatus(str, Enum):
    """보고서 전체 상태"""
    SUCCESS = "success"
    PARTIAL = "partial"
    MISMATCH = "mismatch"


@dataclass
class EntityReport:
    """엔티티별 대조 결과"""

    entity_type: EntityType
    partition: IdPartition
    status: SyncStatus
    status_after: Optional[SyncStatus] = None
    result: Optional[EntitySyncResult] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status.value,
            **self.partition.counts(),
            "missing_remote_ids": list(self.partition.missing_remote),
        }
        if self.status_after is not None:
            data["status_after"] = self.status_after.value
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data


@dataclass
class ReconciliationReport:
    """대조/동기화 보고서"""

    user_id: str
    mode: ReconcileMode
    products: EntityReport
    price_history: EntityReport
    configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    quality_issues: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    execution_time: float = 0.0

    def entities(self) -> List[EntityReport]:
        return [self.products, self.price_history]

    def summary(self) -> Dict[str, int]:
        """created/updated/skipped/failed 합계"""
        totals = {"created": 0, "updated": 0, "skipped": 0, "failed": 0}
        for entity in self.entities():
            if entity.result is not None:
                for key in totals:
                    totals[key] += getattr(entity.result, key)
        return totals

    def failures(self) -> List[Dict[str, Any]]:
        return [
            failure.to_dict()
            for entity in self.entities() if entity.result is not None
            for failure in entity.result.failures
        ]

    @property
    def status(self) -> ReportStatus:
        if self.mode is ReconcileMode.SYNC:
            return ReportStatus.PARTIAL if self.summary()["failed"] else ReportStatus.SUCCESS

        in_sync = all(entity.status in (SyncStatus.FULLY_MATCHED, SyncStatus.BOTH_EMPTY)
                      for entity in self.entities())
        configs_match = all(entry["match"] for entry in self.configs.values())
        clean = not any(self.quality_issues.values())
        return ReportStatus.SUCCESS if in_sync and configs_match and clean else ReportStatus.MISMATCH

    def raise_for_failures(self) -> None:
        """실패한 레코드가 있으면 PartialSyncFailure"""
        summary = self.summary()
        if summary["failed"]:
            raise PartialSyncFailure(
                f"{summary['failed']} records failed to sync "
                f"(created={summary['created']}, updated={summary['updated']}, skipped={summary['skipped']})",
                self.failures()
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "mode": self.mode.value,
            "user_id": self.user_id,
            "summary": self.summary(),
            "products": self.products.to_dict(),
            "price_history": self.price_history.to_dict(),
            "configs": self.configs,
            "quality_issues": self.quality_issues,
            "recommendations": self.recommendations,
            "execution_time": round(self.execution_time, 3),
        }


def _local_ids(records: Iterable[Any]) -> List[str]:
    return [record_id for record_id in (raw_record_id(record) for record in records) if record_id]


def wrap_config(value: Any) -> Dict[str, Any]:
    """설정 값을 {value, updatedAt} 형태로"""
    if isinstance(value, Mapping) and "value" in value:
        wrapped = dict(value)
        wrapped.setdefault("updatedAt", utcnow().isoformat())
        return wrapped
    return {"value": value, "updatedAt": utcnow().isoformat()}


class SyncService:
    """로컬 스냅샷과 원격 저장소 대조/동기화"""

    def __init__(self, executor: SyncExecutor, engine: Optional[ReconciliationEngine] = None,
                 quality_sample_size: Optional[int] = None):
        self.executor = executor
        self.engine = engine or ReconciliationEngine()
        self.quality_sample_size = quality_sample_size or settings.sync.quality_sample_size

    def _entity_report(self, entity_type: EntityType, local: List[Any],
                       remote: List[PricedRecord]) -> EntityReport:
        partition = self.engine.partition(_local_ids(local), [record.id for record in remote])
        status = self.engine.classify(partition)
        log_reconcile_status(entity_type.value, status.value, partition.counts())
        return EntityReport(entity_type, partition, status)

    def _after_sync(self, report: EntityReport, local: List[Any], remote: List[PricedRecord]) -> None:
        remote_after = [record.id for record in remote] + report.result.written_ids
        report.status_after = self.engine.classify(self.engine.partition(_local_ids(local), remote_after))

    def _compare_configs(self, user_id: str, local_configs: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        remote = self.executor.fetch_configs(user_id)
        comparison = {}
        for key in SYNCED_CONFIG_KEYS:
            has_local = local_configs.get(key) is not None
            has_remote = key in remote
            comparison[key] = {"local": has_local, "remote": has_remote, "match": has_local == has_remote}
        return comparison

    def _recommendations(self, report: ReconciliationReport) -> List[str]:
        recommendations = []
        for entity in report.entities():
            if entity.partition.missing_remote:
                recommendations.append(
                    f"Run sync to push {len(entity.partition.missing_remote)} local "
                    f"{entity.entity_type.value} records to the remote store"
                )
        for key, entry in report.configs.items():
            if not entry["match"] and entry["local"]:
                recommendations.append(f"Run sync to store the {key} config remotely")
        for name, issues in report.quality_issues.items():
            if issues:
                recommendations.append(f"Review data quality issues in {len(issues)} remote {name} records")
        return recommendations

    def reconcile(self, user_id: str, snapshot: LocalSnapshot,
                  mode: ReconcileMode = ReconcileMode.VERIFY) -> ReconciliationReport:
        """로컬 스냅샷 대조 (verify: 읽기 전용, sync: 원격에 반영)"""
        mode = ReconcileMode(mode)
        started = time.time()
        log_sync_start(user_id, mode.value, len(snapshot.products), len(snapshot.price_history))

        # 원격 조회 실패는 RepositoryUnavailable 로 그대로 전파
        remote_products = self.executor.fetch_all(user_id, EntityType.PRODUCT)
        remote_history = self.executor.fetch_all(user_id, EntityType.PRICE_HISTORY)

        report = ReconciliationReport(
            user_id=user_id,
            mode=mode,
            products=self._entity_report(EntityType.PRODUCT, snapshot.products, remote_products),
            price_history=self._entity_report(EntityType.PRICE_HISTORY, snapshot.price_history, remote_history),
        )

        if mode is ReconcileMode.SYNC:
            product_plan = self.engine.plan_products(snapshot.products, remote_products)
            report.products.result = self.executor.apply(user_id, EntityType.PRODUCT, product_plan)
            self._after_sync(report.products, snapshot.products, remote_products)

            history_plan = self.engine.plan_history(snapshot.price_history, remote_history)
            report.price_history.result = self.executor.apply(user_id, EntityType.PRICE_HISTORY, history_plan)
            self._after_sync(report.price_history, snapshot.price_history, remote_history)

            configs = {
                key: wrap_config(snapshot.configs[key])
                for key in SYNCED_CONFIG_KEYS if snapshot.configs.get(key) is not None
            }
            pushed = self.executor.push_configs(user_id, configs)
            report.configs = {"pushed": {"count": pushed, "keys": sorted(configs)}}
        else:
            report.configs = self._compare_configs(user_id, snapshot.configs)
            report.quality_issues = {
                "products": data_validator.sample_issues(remote_products, self.quality_sample_size),
                "price_history": data_validator.sample_issues(remote_history, self.quality_sample_size),
            }
            report.recommendations = self._recommendations(report)

        report.execution_time = time.time() - started
        log_sync_result(user_id, mode.value, report.status.value, report.summary(), report.execution_time)
        return report

    def diagnose_missing(self, user_id: str, candidate_ids: Iterable[str],
                         entity_type: EntityType = EntityType.PRICE_HISTORY) -> DiagnosticReport:
        """원격에 없는 후보 ID 분석 (읽기 전용)"""
        remote_ids = [record.id for record in self.executor.fetch_all(user_id, entity_type)]
        partition = self.engine.partition(candidate_ids, remote_ids)
        report = self.engine.analyze_missing(entity_type, partition.missing_remote, remote_ids)
        logger.info(f"Missing {entity_type.value} analysis for user {user_id}: {report.summary()}")
        return report

    def diagnose_failed(self, user_id: str, missing_ids: Iterable[str],
                        local_history: Iterable[Any]) -> DiagnosticReport:
        """동기화되지 않은 이력 ID 원인 분석 (읽기 전용)"""
        remote_products = self.executor.fetch_all(user_id, EntityType.PRODUCT)
        remote_history = self.executor.fetch_all(user_id, EntityType.PRICE_HISTORY)
        report = self.engine.diagnose_failed(
            missing_ids,
            list(local_history),
            [record.id for record in remote_products],
            [record.id for record in remote_history],
        )
        logger.info(f"Failed history diagnosis for user {user_id}: {report.summary()}")
        return report

    def clear_remote(self, user_id: str) -> Dict[str, int]:
        """사용자의 원격 상품/이력/설정 전체 삭제"""
        return self.executor.clear_user(user_id)


def require_user(resolver: Callable[[Any], Optional[Any]], credentials: Any) -> CurrentUser:
    """현재 사용자 확인 (없으면 AuthenticationError)"""
    user = resolver(credentials)
    if user is None:
        raise AuthenticationError("Unauthorized", error_code="UNAUTHORIZED")

    if isinstance(user, CurrentUser):
        return user
    if isinstance(user, Mapping):
        if not user.get("id"):
            raise AuthenticationError("Resolved user has no id", error_code="UNAUTHORIZED")
        return CurrentUser(id=str(user["id"]), email=user.get("email", ""), name=user.get("name", ""))
    return CurrentUser(id=str(user.id), email=getattr(user, "email", ""), name=getattr(user, "name", ""))
