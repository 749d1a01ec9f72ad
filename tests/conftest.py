"""Pytest configuration and fixtures."""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from models.records import ProductRecord
from storage.connection import DatabaseManager
from sync.executor import SyncExecutor
from sync.service import SyncService


USER_ID = "user-0001"
OTHER_USER_ID = "user-0002"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: pure logic tests without a database")
    config.addinivalue_line("markers", "integration: tests against the in-memory SQLite store")


@pytest.fixture(scope="function")
def db_manager():
    """
    테스트용 데이터베이스 매니저.
    각 테스트마다 새로운 메모리 SQLite DB 생성.
    """
    manager = DatabaseManager("sqlite://")
    manager.create_tables()
    yield manager
    manager.close()


@pytest.fixture(scope="function")
def session_scope(db_manager):
    """db_manager.get_session 과 동일한 세션 컨텍스트 팩토리"""
    return db_manager.get_session


@pytest.fixture(scope="function")
def executor(session_scope):
    # 작은 페이지 크기로 페이지 조회 경로까지 실행
    return SyncExecutor(session_scope, fetch_limit=10000, page_size=2)


@pytest.fixture(scope="function")
def sync_service(executor):
    return SyncService(executor)


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def clock():
    """호출할 때마다 1초씩 증가하는 고정 시계"""
    start = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    ticks = count()

    def now():
        return start + timedelta(seconds=next(ticks))

    return now


@pytest.fixture
def id_factory():
    """순번 기반 ID 생성기"""
    def factory(prefix):
        ticks = count(1)
        return lambda: f"{prefix}-{next(ticks):04d}"
    return factory


@pytest.fixture
def broken_scope():
    """열 때마다 연결 오류를 내는 세션 컨텍스트"""
    from sqlalchemy.exc import OperationalError

    @contextmanager
    def scope():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        yield

    return scope


@pytest.fixture
def product_factory():
    """테스트용 상품 레코드 생성기"""
    return make_product


@pytest.fixture
def history_factory():
    """테스트용 가격 이력 원시 레코드 생성기"""
    return make_history


def make_product(record_id="p-0001", product_code="KEW001", **overrides):
    """테스트용 상품 레코드"""
    stamp = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    values = dict(
        id=record_id,
        user_id=USER_ID,
        category="耳环/耳逼",
        product_code=product_code,
        product_name="Hoop earring",
        weight=2.0,
        labor_cost=100.0,
        karat="18K",
        gold_color="黄金",
        gold_price=500.0,
        wholesale_price=313.77,
        retail_price=363.77,
        labor_cost_date=stamp,
        accessory_cost_date=stamp,
        stone_cost_date=stamp,
        plating_cost_date=stamp,
        mold_cost_date=stamp,
        commission_date=stamp,
        timestamp=stamp,
    )
    values.update(overrides)
    return ProductRecord(**values)


def make_history(record_id="h-0001", product_id="p-0001", product_code="KEW001", **overrides):
    """테스트용 가격 이력 원시 레코드 (camelCase, 클라이언트 캐시 형태)"""
    raw = {
        "id": record_id,
        "productId": product_id,
        "productCode": product_code,
        "productName": "Hoop earring",
        "category": "耳环/耳逼",
        "weight": 2,
        "laborCost": 100,
        "karat": "18K",
        "goldColor": "黄金",
        "goldPrice": 500,
        "wholesalePrice": 313.77,
        "retailPrice": 363.77,
        "laborCostDate": "2024-05-01T09:00:00.000Z",
        "accessoryCostDate": "2024-05-01T09:00:00.000Z",
        "stoneCostDate": "2024-05-01T09:00:00.000Z",
        "platingCostDate": "2024-05-01T09:00:00.000Z",
        "moldCostDate": "2024-05-01T09:00:00.000Z",
        "commissionDate": "2024-05-01T09:00:00.000Z",
        "timestamp": "2024-05-01T09:00:00.000Z",
    }
    raw.update(overrides)
    return raw


class FakeRedis:
    """setex/get/delete 만 지원하는 메모리 Redis"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    def ping(self):
        return True


class FakeRedisManager:
    """RedisManager 와 같은 get_client 인터페이스"""

    def __init__(self, client=None):
        self.client = client or FakeRedis()

    @contextmanager
    def get_client(self):
        yield self.client


@pytest.fixture
def fake_redis():
    return FakeRedisManager()


@pytest.fixture
def snapshot_cache(fake_redis):
    from storage.redis_client import SnapshotCache
    return SnapshotCache(fake_redis, prefix="test:snapshot", ttl=60)
