"""
ReconciliationEngine 단위 테스트

ID 분할, 상태 분류, 동기화 계획, 누락 ID 진단을 검증합니다.
"""
from dataclasses import replace

import pytest

from models.base import EntityType
from models.records import PriceHistoryRecord
from sync.reconciliation import (
    IdPartition, IssueKind, ReconciliationEngine, SyncAction, SyncStatus, same_content
)
from utils.validation import normalize_history


@pytest.fixture
def engine():
    return ReconciliationEngine(truncated_id_length=36)


LONG_ID = "3f2b8c1e-7a4d-4e9b-9c1a-0d5e6f7a8b9c_1714554000000_hist"


@pytest.mark.unit
class TestPartition:
    """ID 분할"""

    def test_partition(self, engine):
        partition = engine.partition(["a", "b", "c"], ["b", "c", "d"])
        assert partition.both == ["b", "c"]
        assert partition.missing_remote == ["a"]
        assert partition.missing_local == ["d"]

    @pytest.mark.parametrize("local,remote", [
        ([], []),
        (["a", "a", "b"], ["b"]),
        (["x", "y"], ["y", "z", "z"]),
        (["1", "2", "3"], ["3", "2", "1"]),
    ])
    def test_partition_counts_add_up(self, engine, local, remote):
        """|both| + |missing_remote| = |L|, |both| + |missing_local| = |R|"""
        partition = engine.partition(local, remote)
        assert partition.local_count == len(set(local))
        assert partition.remote_count == len(set(remote))
        assert not set(partition.missing_remote) & set(remote)
        assert not set(partition.missing_local) & set(local)

    def test_counts(self, engine):
        assert engine.partition(["a", "b"], ["b"]).counts() == {
            "local_count": 2, "remote_count": 1, "both": 1, "missing_remote": 1, "missing_local": 0,
        }


@pytest.mark.unit
class TestClassify:
    """상태 분류 (먼저 맞는 규칙 우선)"""

    @pytest.mark.parametrize("partition,expected", [
        (IdPartition(), SyncStatus.BOTH_EMPTY),
        (IdPartition(missing_remote=["a"]), SyncStatus.LOCAL_AHEAD),
        (IdPartition(missing_remote=["a"], missing_local=["b"]), SyncStatus.LOCAL_AHEAD),
        (IdPartition(both=["a"], missing_local=["b"]), SyncStatus.REMOTE_AHEAD),
        (IdPartition(both=["a"]), SyncStatus.FULLY_MATCHED),
    ])
    def test_classify(self, engine, partition, expected):
        assert engine.classify(partition) is expected


@pytest.mark.unit
class TestPlanProducts:
    """상품 동기화 계획"""

    def test_create_update_skip(self, engine, product_factory):
        remote = [
            product_factory(record_id="same"),
            product_factory(record_id="changed", product_code="KEW002"),
        ]
        local = [
            product_factory(record_id="same"),
            product_factory(record_id="changed", product_code="KEW002", labor_cost=120.0),
            product_factory(record_id="new", product_code="KEW003"),
        ]

        plan = engine.plan_products(local, remote)

        assert [(p.record_id, p.action) for p in plan] == [
            ("same", SyncAction.SKIP),
            ("changed", SyncAction.UPDATE),
            ("new", SyncAction.CREATE),
        ]
        assert plan[1].record.labor_cost == 120.0

    def test_invalid_records_are_rejected(self, engine, product_factory):
        local = [
            {"productCode": "NOID"},
            {"id": "p" * 201, "productCode": "LONG"},
            product_factory(record_id="ok"),
        ]
        plan = engine.plan_products(local, [])

        assert [p.action for p in plan] == [SyncAction.REJECT, SyncAction.REJECT, SyncAction.CREATE]
        assert plan[0].record_id is None
        assert "exceeds" in plan[1].error

    def test_duplicate_local_ids(self, engine, product_factory):
        """같은 ID 는 처음 나온 것만 처리"""
        local = [
            product_factory(record_id="dup", weight=1.0),
            product_factory(record_id="dup", weight=9.0),
        ]
        plan = engine.plan_products(local, [])

        assert plan[0].action is SyncAction.REJECT
        assert plan[0].issue is IssueKind.DUPLICATE_ID
        assert plan[1].action is SyncAction.CREATE
        assert plan[1].record.weight == 1.0

    def test_numeric_scale_is_ignored(self, engine, product_factory):
        """컬럼 scale 이하 차이는 같은 내용으로 취급"""
        local = [product_factory(record_id="p1", weight=2.0001)]
        remote = [product_factory(record_id="p1", weight=2.0)]
        assert engine.plan_products(local, remote)[0].action is SyncAction.SKIP

    def test_missing_local_dates_follow_remote(self, engine, product_factory):
        """로컬에 날짜가 없으면 원격 값 사용 (재동기화 시 불필요한 갱신 방지)"""
        remote = [product_factory(record_id="p1")]
        raw = {
            "id": "p1", "productCode": "KEW001", "category": "耳环/耳逼", "productName": "Hoop earring",
            "weight": 2, "laborCost": 100, "goldPrice": 500,
            "wholesalePrice": 313.77, "retailPrice": 363.77,
        }
        plan = engine.plan_products([raw], remote)
        assert plan[0].action is SyncAction.SKIP
        assert plan[0].record.timestamp == remote[0].timestamp

    def test_normalize(self, engine):
        records, rejected = engine.normalize(EntityType.PRODUCT, [{"id": "a", "productCode": "A"}, {}])
        assert [r.id for r in records] == ["a"]
        assert len(rejected) == 1


@pytest.mark.unit
class TestPlanHistory:
    """이력 동기화 계획 (갱신 없음)"""

    def test_create_and_skip(self, engine, history_factory):
        remote = [normalize_history(history_factory(record_id="h1"))]
        local = [history_factory(record_id="h1"), history_factory(record_id="h2")]

        plan = engine.plan_history(local, remote)

        assert [(p.record_id, p.action) for p in plan] == [("h1", SyncAction.SKIP), ("h2", SyncAction.CREATE)]
        assert plan[0].issue is None

    def test_identity_conflict_is_never_updated(self, engine, history_factory):
        remote = [normalize_history(history_factory(record_id="h1"))]
        local = [history_factory(record_id="h1", retailPrice=999)]

        plan = engine.plan_history(local, remote)

        assert plan[0].action is SyncAction.SKIP
        assert plan[0].issue is IssueKind.IDENTITY_CONFLICT
        assert all(p.action is not SyncAction.UPDATE for p in plan)

    def test_missing_product_id_is_rejected(self, engine, history_factory):
        raw = history_factory(record_id="h1")
        del raw["productId"]
        plan = engine.plan_history([raw], [])
        assert plan[0].action is SyncAction.REJECT
        assert plan[0].to_dict() == {
            "action": "reject", "entity_type": "price_history", "id": "h1",
            "error": "history record is missing productId",
        }


@pytest.mark.unit
class TestSameContent:
    def test_identity_fields_are_ignored(self, history_factory):
        record = normalize_history(history_factory())
        other = replace(record, user_id="someone", created_at=None)
        assert same_content(record, other)

    def test_content_difference(self, history_factory):
        record = normalize_history(history_factory())
        assert not same_content(record, replace(record, shape="round"))


@pytest.mark.unit
class TestAnalyzeMissing:
    """잘린 ID 진단"""

    def test_truncated(self, engine):
        assert engine.truncated(LONG_ID) == LONG_ID[:36]
        assert engine.truncated("short-id") is None
        assert engine.truncated("x" * 36) is None

    def test_analyze_missing(self, engine):
        remote = [LONG_ID[:36], "other"]
        report = engine.analyze_missing(EntityType.PRICE_HISTORY, [LONG_ID, "gone"], remote)

        first, second = report.diagnoses
        assert first.issues == [IssueKind.LIKELY_TRUNCATED]
        assert first.truncated_id == LONG_ID[:36]
        assert second.issues == [IssueKind.NOT_FOUND]
        assert report.summary() == {"likely-truncated": 1, "not-found": 1}
        assert report.length_distribution() == {4: 1, len(LONG_ID): 1}
        assert report.to_dict()["missing_count"] == 2


@pytest.mark.unit
class TestDiagnoseFailed:
    """동기화 실패 원인 분류"""

    def test_missing_local_record(self, engine):
        report = engine.diagnose_failed(["ghost"], [], [], [])
        assert report.diagnoses[0].issues == [IssueKind.MISSING_LOCAL_RECORD]

    def test_missing_product(self, engine, history_factory):
        local = [history_factory(record_id="h1", product_id="p-gone")]
        report = engine.diagnose_failed(["h1"], local, ["p-0001"], [])

        diagnosis = report.diagnoses[0]
        assert diagnosis.issues == [IssueKind.MISSING_PRODUCT]
        assert diagnosis.product_id == "p-gone"
        assert diagnosis.product_code == "KEW001"

    def test_causes_combine(self, engine, history_factory):
        """원인은 여러 개 동시에 나올 수 있음"""
        local = [
            history_factory(record_id=LONG_ID, product_id="p-gone"),
            history_factory(record_id=LONG_ID, product_id="p-gone"),
        ]
        report = engine.diagnose_failed([LONG_ID], local, [], [LONG_ID[:36]])

        diagnosis = report.diagnoses[0]
        assert diagnosis.issues == [
            IssueKind.MISSING_PRODUCT, IssueKind.LIKELY_TRUNCATED, IssueKind.DUPLICATE_ID
        ]
        assert diagnosis.duplicate_count == 2
        assert diagnosis.to_dict()["truncated_id"] == LONG_ID[:36]

    def test_accepts_records(self, engine):
        local = [PriceHistoryRecord(id="h1", product_id="p1", product_code="A")]
        report = engine.diagnose_failed(["h1"], local, ["p1"], [])
        assert report.diagnoses[0].issues == []
        assert report.summary() == {}
