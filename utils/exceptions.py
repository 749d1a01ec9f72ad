"""
Error taxonomy for pricing and reconciliation.

Validation and per-record write failures are aggregated by the sync layer;
configuration and repository connectivity failures propagate to the caller.
"""

from typing import Any, Dict, List, Optional


class QuoteError(Exception):
    """
    Base exception for the quote system

    Attributes:
        message: 에러 메시지
        error_code: 에러 코드
        context: 추가 컨텍스트 정보
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """에러 정보를 딕셔너리로 변환"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class ValidationError(QuoteError):
    """잘못되었거나 불완전한 입력 레코드"""

    def __init__(self, message: str, field: Optional[str] = None, record_id: Optional[str] = None):
        context = {}
        if field:
            context["field"] = field
        if record_id:
            context["record_id"] = record_id
        super().__init__(message, context=context)
        self.field = field
        self.record_id = record_id


class ConfigurationError(QuoteError):
    """계수 설정 오류 (환율 0, 순도 계수 누락 등)"""


class RepositoryUnavailable(QuoteError):
    """원격 저장소 조회 실패"""


class AuthenticationError(QuoteError):
    """현재 사용자를 확인할 수 없음"""


class PartialSyncFailure(QuoteError):
    """일부 레코드 동기화 실패"""

    def __init__(self, message: str, failures: List[Dict[str, Any]]):
        super().__init__(message, context={"failed": len(failures)})
        self.failures = failures

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["failures"] = self.failures
        return data
