from fastapi import HTTPException, status
from typing import Optional, Dict, Any, List


class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message


class AuthorizationError(BaseAPIException):
    """Authorization related errors"""
    def __init__(self, message: str = "Access forbidden", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details
        )


class ValidationError(BaseAPIException):
    """Malformed input"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )


class NotFoundError(BaseAPIException):
    """Missing account, document, nonce or record"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details
        )


class ConflictError(BaseAPIException):
    """Resource conflict errors (duplicate key)"""
    def __init__(self, message: str = "Resource conflict", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT_001",
            message=message,
            details=details
        )


class VersionConflictError(ConflictError):
    """Optimistic concurrency check failed: the record changed since it was read"""
    def __init__(self, key: str, expected_version: Optional[int] = None, actual_version: Optional[int] = None):
        super().__init__(
            message=f"Concurrent modification detected for key {key}",
            details={
                "key": key,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.key = key


class InsufficientBalanceError(BaseAPIException):
    """Insufficient balance errors"""
    def __init__(self, message: str = "Insufficient balance", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BALANCE_001",
            message=message,
            details=details
        )


class ReplayError(BaseAPIException):
    """Nonce reused, expired or issued to someone else"""

    NONCE_NOT_FOUND = "nonce_not_found"
    USER_MISMATCH = "user_mismatch"
    SIGNATURE_MISMATCH = "signature_mismatch"
    NONCE_EXPIRED = "nonce_expired"

    def __init__(self, reason: str, message: Optional[str] = None, details: Optional[Dict] = None):
        self.reason = reason
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="REPLAY_001",
            message=message or f"Transaction replay rejected: {reason}",
            details={"reason": reason, **(details or {})},
        )


class SignatureError(BaseAPIException):
    """Transaction signature could not be verified"""
    def __init__(self, message: str = "Transaction signature verification failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="SIGNATURE_001",
            message=message,
            details=details
        )


class PersistenceError(BaseAPIException):
    """Ledger state read/write failure"""
    def __init__(self, message: str = "Ledger persistence failure", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="PERSISTENCE_001",
            message=message,
            details=details
        )


class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )


class ServiceException(Exception):
    """Base exception for service layer errors"""
    pass


class StatisticsUpdateError(ServiceException):
    """One or more statistics keys could not be updated"""

    def __init__(self, failed_keys: List[str], errors: Optional[Dict[str, str]] = None):
        self.failed_keys = failed_keys
        self.errors = errors or {}
        super().__init__(
            f"Failed to update statistics keys: {', '.join(failed_keys)}"
        )
