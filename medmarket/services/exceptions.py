"""
Marketplace Exception Classes

구조화된 에러 처리를 위한 예외 클래스 정의.
API 계층은 error_code/status_code를 그대로 응답에 사용합니다.
"""
from typing import Optional, Dict, Any
from enum import Enum

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError


class ErrorSeverity(Enum):
    """에러 심각도 레벨"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MarketplaceError(Exception):
    """
    Base exception for all marketplace errors

    Attributes:
        message: 에러 메시지
        error_code: 에러 코드
        severity: 에러 심각도
        context: 추가 컨텍스트 정보
        recoverable: 재시도로 회복 가능한지 여부
    """

    status_code = 400

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.severity = severity
        self.context = context or {}
        self.recoverable = recoverable
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """에러 정보를 딕셔너리로 변환"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "recoverable": self.recoverable
        }


class AuthenticationError(MarketplaceError):
    status_code = 401

    def __init__(self, message: str = "인증이 필요합니다", **kwargs):
        super().__init__(message, error_code="AUTHENTICATION_ERROR", severity=ErrorSeverity.LOW, context=kwargs)


class AuthorizationError(MarketplaceError):
    """
    권한 정책(predicate)이 요청을 거부한 경우

    Attributes:
        action: 시도한 작업
        resource: 대상 리소스 종류
    """

    status_code = 403

    def __init__(self, message: str, action: Optional[str] = None, resource: Optional[str] = None, **kwargs):
        context = {"action": action, "resource": resource}
        context.update(kwargs)
        super().__init__(message, error_code="AUTHORIZATION_ERROR", severity=ErrorSeverity.MEDIUM, context=context)
        self.action = action
        self.resource = resource


class NotFoundError(MarketplaceError):
    status_code = 404

    def __init__(self, message: str, resource: Optional[str] = None, resource_id: Optional[Any] = None):
        super().__init__(
            message,
            error_code="NOT_FOUND",
            severity=ErrorSeverity.LOW,
            context={"resource": resource, "resource_id": str(resource_id) if resource_id is not None else None},
        )
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(MarketplaceError):
    """
    Input validation failures

    Attributes:
        field: 실패한 필드 이름
        actual_value: 실제 값
    """

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, actual_value: Optional[Any] = None, **kwargs):
        context = {
            "field": field,
            "actual_value": str(actual_value) if actual_value is not None else None,
        }
        context.update(kwargs)
        super().__init__(message, error_code="VALIDATION_ERROR", severity=ErrorSeverity.LOW, context=context)
        self.field = field
        self.actual_value = actual_value


class ConflictError(MarketplaceError):
    status_code = 409

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFLICT", severity=ErrorSeverity.LOW, context=kwargs)


class TransitionError(ConflictError):
    """
    허용되지 않은 상태 전이

    Attributes:
        from_status: 현재 상태
        to_status: 요청된 상태
        actor_role: 요청자 역할
    """

    def __init__(
        self,
        message: str,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        actor_role: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, from_status=from_status, to_status=to_status, actor_role=actor_role, **kwargs)
        self.error_code = "TRANSITION_NOT_ALLOWED"
        self.from_status = from_status
        self.to_status = to_status
        self.actor_role = actor_role


class OutOfStockError(ConflictError):
    def __init__(self, message: str, product_id: Optional[Any] = None, requested: Optional[int] = None):
        super().__init__(message, product_id=str(product_id) if product_id else None, requested=requested)
        self.error_code = "OUT_OF_STOCK"
        self.product_id = product_id
        self.requested = requested


class PriceChangedError(ConflictError):
    def __init__(self, message: str, product_id: Optional[Any] = None, expected: Optional[Any] = None, actual: Optional[Any] = None):
        super().__init__(
            message,
            product_id=str(product_id) if product_id else None,
            expected=str(expected) if expected is not None else None,
            actual=str(actual) if actual is not None else None,
        )
        self.error_code = "PRICE_CHANGED"


class DatabaseError(MarketplaceError):
    """
    Database operation failures (일시적 장애 포함)

    Attributes:
        operation: 수행하려던 작업 (insert, update, delete, select)
    """

    status_code = 503

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
        recoverable: bool = True,
        **kwargs
    ):
        context = {"operation": operation}
        context.update(kwargs)
        super().__init__(
            message=message,
            error_code="DATABASE_ERROR",
            severity=severity,
            context=context,
            recoverable=recoverable
        )
        self.operation = operation


def wrap_exception(error: Exception, **kwargs) -> MarketplaceError:
    """
    일반 예외를 구조화된 예외로 래핑

    Args:
        error: 원래 예외
        **kwargs: 생성자에 전달할 추가 컨텍스트

    Returns:
        래핑된 MarketplaceError 인스턴스
    """
    if isinstance(error, MarketplaceError):
        return error

    if isinstance(error, IntegrityError):
        return ConflictError(f"데이터 무결성 위반: {error.orig}", **kwargs)
    if isinstance(error, OperationalError):
        return DatabaseError(f"데이터베이스 연결 오류: {error.orig}", **kwargs)
    if isinstance(error, SQLAlchemyError):
        return DatabaseError(f"데이터베이스 오류: {error}", **kwargs)

    return MarketplaceError(str(error), context=kwargs)
