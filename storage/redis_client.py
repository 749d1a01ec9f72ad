"""
Redis connection and client snapshot cache for the jewelry quote system.

The client keeps its working set (products, price history, configs) locally
between sessions. ``SnapshotCache`` persists that working set per user so a
later reconciliation run can start from it.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from redis import ConnectionPool, Redis
from redis.exceptions import ConnectionError, TimeoutError, RedisError

from config.settings import settings
from models.records import utcnow
from utils.exceptions import RepositoryUnavailable

logger = logging.getLogger(__name__)


class RedisManager:
    """스냅샷 캐시용 Redis 연결 관리자"""

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._initialized = False

    @property
    def url(self) -> str:
        return self._url or settings.redis.url

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def safe_url(self) -> str:
        """비밀번호를 가린 연결 URL (로그용)"""
        parts = urlsplit(self.url)
        if parts.password is None:
            return self.url
        netloc = f"{parts.username or ''}:***@{parts.hostname}"
        if parts.port:
            netloc += f":{parts.port}"
        return urlunsplit(parts._replace(netloc=netloc))

    def initialize(self) -> None:
        """Redis 연결 초기화 (연결 실패 시 RepositoryUnavailable)"""
        if self._initialized:
            return

        try:
            # 연결 풀 생성
            self._pool = ConnectionPool.from_url(
                self.url,
                max_connections=settings.redis.max_connections,
                socket_timeout=settings.redis.socket_timeout,
                socket_connect_timeout=settings.redis.socket_connect_timeout,
                retry_on_timeout=settings.redis.retry_on_timeout,
                health_check_interval=settings.redis.health_check_interval,
                decode_responses=True
            )
            self._client = Redis(connection_pool=self._pool)

            # 연결 테스트
            self._client.ping()

        except RedisError as e:
            logger.error(f"Failed to connect snapshot cache at {self.safe_url()}: {e}")
            self._reset()
            raise RepositoryUnavailable(
                f"Snapshot cache unavailable: {e}",
                context={"url": self.safe_url()}
            ) from e

        self._initialized = True
        logger.info(f"Snapshot cache connected at {self.safe_url()}")

    @contextmanager
    def get_client(self):
        """Redis 클라이언트 컨텍스트 매니저"""
        if not self._initialized:
            self.initialize()

        try:
            yield self._client
        except (ConnectionError, TimeoutError) as e:
            logger.error(f"Redis connection error: {e}")
            raise
        except RedisError as e:
            logger.error(f"Redis operation error: {e}")
            raise

    def check_connection(self) -> bool:
        """Redis 연결 상태 확인"""
        try:
            with self.get_client() as client:
                client.ping()
            return True
        except (RedisError, RepositoryUnavailable) as e:
            logger.error(f"Redis connection check failed: {e}")
            return False

    def _reset(self) -> None:
        if self._pool is not None:
            self._pool.disconnect()
        self._pool = None
        self._client = None
        self._initialized = False

    def close(self) -> None:
        """Redis 연결 종료"""
        if self._pool is not None:
            logger.info("Snapshot cache connection closed")
        self._reset()


class SnapshotCache:
    """사용자별 로컬 작업 데이터 스냅샷 캐시"""

    def __init__(self, redis_manager: RedisManager, prefix: Optional[str] = None,
                 ttl: Optional[int] = None):
        self.redis_manager = redis_manager
        self.prefix = prefix or settings.redis.snapshot_prefix
        self.ttl = ttl or settings.redis.snapshot_ttl

    def key_for(self, user_id: str) -> str:
        return f"{self.prefix}:{user_id}"

    def save_snapshot(self, user_id: str, payload: Dict[str, Any]) -> bool:
        """스냅샷 저장 (products / priceHistory / configs)"""
        try:
            with self.redis_manager.get_client() as client:
                document = dict(payload)
                document["savedAt"] = utcnow().isoformat()
                client.setex(self.key_for(user_id), self.ttl, json.dumps(document, ensure_ascii=False, default=str))

                logger.info(
                    f"Snapshot saved for user {user_id}: "
                    f"{len(payload.get('products', []))} products, "
                    f"{len(payload.get('priceHistory', []))} history entries"
                )
                return True

        except Exception as e:
            logger.error(f"Failed to save snapshot: {e}")
            return False

    def load_snapshot(self, user_id: str) -> Optional[Dict[str, Any]]:
        """스냅샷 조회 (없거나 손상된 경우 None)"""
        try:
            with self.redis_manager.get_client() as client:
                value = client.get(self.key_for(user_id))
                if value is None:
                    return None

                try:
                    return json.loads(value)
                except json.JSONDecodeError:
                    logger.warning(f"Discarding unreadable snapshot for user {user_id}")
                    return None

        except Exception as e:
            logger.error(f"Failed to load snapshot: {e}")
            return None

    def clear(self, user_id: str) -> bool:
        """스냅샷 삭제"""
        try:
            with self.redis_manager.get_client() as client:
                return client.delete(self.key_for(user_id)) > 0

        except Exception as e:
            logger.error(f"Failed to delete snapshot: {e}")
            return False


# 전역 인스턴스
redis_manager = RedisManager()
snapshot_cache = SnapshotCache(redis_manager)


# 편의 함수들
def init_redis() -> None:
    """Redis 연결 초기화"""
    redis_manager.initialize()


def close_redis() -> None:
    """Redis 연결 종료"""
    redis_manager.close()
