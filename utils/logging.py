"""
Logging configuration and utilities for the jewelry quote system.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from config.settings import settings


class JsonFormatter(logging.Formatter):
    """JSON 형태로 로그를 포맷하는 커스텀 포맷터"""

    def format(self, record: logging.LogRecord) -> str:
        """로그 레코드를 JSON 형태로 변환"""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # 예외 정보가 있는 경우 추가
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # 추가 필드가 있는 경우 포함
        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class QuoteLogger:
    """견적/동기화 로거 설정 및 관리"""

    def __init__(self):
        self._loggers: Dict[str, logging.Logger] = {}
        self._setup_root_logger()

    def _setup_root_logger(self) -> None:
        """루트 로거 설정"""
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, settings.logging.level.upper()))

        # 기존 핸들러 제거
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(self._build_formatter())
        root_logger.addHandler(console_handler)

        # 파일 핸들러 추가 (설정된 경우)
        if settings.logging.file_path:
            self._add_file_handler(root_logger)

    def _build_formatter(self) -> logging.Formatter:
        if settings.logging.json_logging:
            return JsonFormatter()
        return logging.Formatter(settings.logging.format)

    def _add_file_handler(self, logger: logging.Logger) -> None:
        """파일 핸들러 추가"""
        log_file = Path(settings.logging.file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=settings.logging.max_file_size,
            backupCount=settings.logging.backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(self._build_formatter())
        logger.addHandler(file_handler)

    def get_logger(self, name: str) -> logging.Logger:
        """특정 이름의 로거 반환"""
        if name not in self._loggers:
            self._loggers[name] = logging.getLogger(name)

        return self._loggers[name]

    def log_event(self, logger: logging.Logger, level: int, message: str,
                  extra_fields: Dict[str, Any], error: Optional[Exception] = None) -> None:
        """extra_fields 를 실은 구조화 로그"""
        if not logger.isEnabledFor(level):
            return
        exc_info = (type(error), error, error.__traceback__) if error else None
        record = logger.makeRecord(
            logger.name, level, __file__, 0, message, (), exc_info
        )
        record.extra_fields = extra_fields
        logger.handle(record)


# 전역 로거 인스턴스
quote_logger = QuoteLogger()


def get_logger(name: str) -> logging.Logger:
    """로거 획득 함수"""
    return quote_logger.get_logger(name)


def setup_logging() -> None:
    """로깅 시스템 초기화"""
    global quote_logger
    quote_logger = QuoteLogger()

    logger = get_logger(__name__)
    logger.info("Logging system initialized")


# 편의 함수들
def log_sync_start(user_id: str, mode: str, product_count: int, history_count: int) -> None:
    """동기화 시작 로그"""
    logger = get_logger("sync.task")
    quote_logger.log_event(
        logger, logging.INFO,
        f"Reconciliation started: user={user_id} mode={mode}",
        {
            "event_type": "sync_start",
            "user_id": user_id,
            "mode": mode,
            "product_count": product_count,
            "history_count": history_count,
        }
    )


def log_sync_result(user_id: str, mode: str, status: str, summary: Dict[str, Any],
                    execution_time: float) -> None:
    """동기화 결과 로그"""
    logger = get_logger("sync.task")
    quote_logger.log_event(
        logger, logging.INFO,
        f"Reconciliation finished: user={user_id} status={status}",
        {
            "event_type": "sync_result",
            "user_id": user_id,
            "mode": mode,
            "status": status,
            "execution_time": execution_time,
            **summary,
        }
    )


def log_record_failure(entity_type: str, record_id: Optional[str], error: Exception) -> None:
    """레코드 단위 실패 로그"""
    logger = get_logger("sync.record")
    quote_logger.log_event(
        logger, logging.ERROR,
        f"Record sync failed: {entity_type} {record_id} - {error}",
        {
            "event_type": "record_failure",
            "entity_type": entity_type,
            "record_id": record_id,
            "error_type": type(error).__name__,
            "error_message": str(error),
        },
        error=error
    )


def log_reconcile_status(entity_type: str, status: str, counts: Dict[str, int]) -> None:
    """엔티티별 대조 결과 로그"""
    logger = get_logger("sync.reconcile")
    quote_logger.log_event(
        logger, logging.INFO,
        f"{entity_type} reconcile status: {status}",
        {
            "event_type": "reconcile_status",
            "entity_type": entity_type,
            "status": status,
            **counts,
        }
    )
