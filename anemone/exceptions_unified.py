"""
Unified error system for the Anemone agent.

One hierarchy for every error raised by collaborators (completion provider,
chain and token clients, persistence) and by the orchestration core itself:
- Consistent error context and metadata
- Category/severity classification used by the HTTP layer
- create_error_context, used by the HTTP layer for exceptions outside the hierarchy

The orchestration core never lets these escape to the chat caller: they are
caught at the executor, the dispatcher or the planner and degraded there.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Enums
# ============================================================================

class ErrorSeverity(Enum):
    """Error severity levels."""
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorCategory(Enum):
    """Error categories for classification and routing."""
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    LLM_SERVICE = "llm_service"
    BLOCKCHAIN = "blockchain"
    DATABASE = "database"
    TIMEOUT = "timeout"
    NETWORK = "network"
    TASK = "task"
    DISPATCH = "dispatch"
    INTERNAL = "internal"


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ErrorContext:
    """Rich error context with metadata."""
    error_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.INTERNAL
    message: str = ""
    user_message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    is_recoverable: bool = True
    http_status: int = 500


# ============================================================================
# Exception Hierarchy
# ============================================================================

class AnemoneException(Exception):
    """Base exception for all Anemone errors with rich context."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        is_recoverable: bool = True,
        http_status: int = 500,
        user_message: Optional[str] = None,
    ):
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.is_recoverable = is_recoverable
        self.http_status = http_status
        self.user_message = user_message or message
        self.context = ErrorContext(
            severity=severity,
            category=category,
            message=message,
            user_message=self.user_message,
            details=self.details,
            is_recoverable=is_recoverable,
            http_status=http_status,
        )
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# ============================================================================
# Validation / Configuration Errors
# ============================================================================

class ValidationError(AnemoneException):
    """Input validation failed."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        kwargs.setdefault("severity", ErrorSeverity.WARNING)
        kwargs.setdefault("http_status", 400)
        super().__init__(message, **kwargs)


class ConfigurationError(AnemoneException):
    """Required configuration is missing or invalid."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.CONFIGURATION)
        kwargs.setdefault("is_recoverable", False)
        super().__init__(message, **kwargs)


# ============================================================================
# LLM Errors
# ============================================================================

class LLMError(AnemoneException):
    """Completion provider failure."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.LLM_SERVICE)
        kwargs.setdefault("http_status", 502)
        super().__init__(message, **kwargs)


class LLMProviderError(LLMError):
    """Provider returned an error response or malformed payload."""
    pass


class LLMTimeoutError(LLMError):
    """Provider did not answer in time."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.TIMEOUT)
        kwargs.setdefault("http_status", 504)
        super().__init__(message, **kwargs)


# ============================================================================
# Collaborator Errors
# ============================================================================

class ChainClientError(AnemoneException):
    """Sui RPC call failed or returned an unusable object."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.BLOCKCHAIN)
        kwargs.setdefault("http_status", 502)
        super().__init__(message, **kwargs)


class TokenServiceError(AnemoneException):
    """Token balance service (Blockberry) failure."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.NETWORK)
        kwargs.setdefault("http_status", 503)
        super().__init__(message, **kwargs)


class PersistenceError(AnemoneException):
    """SQLite read/write failed."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.DATABASE)
        super().__init__(message, **kwargs)


# ============================================================================
# Orchestration Errors
# ============================================================================

class TaskError(AnemoneException):
    """Task plan state machine error."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.TASK)
        super().__init__(message, **kwargs)


class InvalidTaskTransitionError(TaskError):
    """A task was asked to move to a state its current state cannot reach."""
    pass


class CommandDispatchError(AnemoneException):
    """A command handler could not produce a result."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.DISPATCH)
        super().__init__(message, **kwargs)


class UnknownCommandError(CommandDispatchError):
    """No handler is registered for the command token."""
    pass


# ============================================================================
# Utility Functions
# ============================================================================

def create_error_context(
    error: Exception,
    category: Optional[ErrorCategory] = None,
) -> ErrorContext:
    """Create ErrorContext from any exception."""
    if isinstance(error, AnemoneException):
        return error.context

    if category is None:
        category = _categorize_error(error)

    return ErrorContext(
        severity=ErrorSeverity.ERROR,
        category=category,
        message=str(error),
        user_message=_generate_user_message(category),
        http_status=_determine_http_status(category),
    )


def _categorize_error(error: Exception) -> ErrorCategory:
    """Auto-categorize exception."""
    error_type = type(error).__name__.lower()

    if "validation" in error_type or "value" in error_type:
        return ErrorCategory.VALIDATION
    elif "timeout" in error_type:
        return ErrorCategory.TIMEOUT
    elif "network" in error_type or "connect" in error_type:
        return ErrorCategory.NETWORK
    return ErrorCategory.INTERNAL


def _determine_http_status(category: ErrorCategory) -> int:
    mapping = {
        ErrorCategory.VALIDATION: 400,
        ErrorCategory.TIMEOUT: 504,
        ErrorCategory.NETWORK: 503,
        ErrorCategory.LLM_SERVICE: 502,
        ErrorCategory.BLOCKCHAIN: 502,
    }
    return mapping.get(category, 500)


def _generate_user_message(category: ErrorCategory) -> str:
    messages = {
        ErrorCategory.VALIDATION: "Your input is invalid. Please check and try again.",
        ErrorCategory.TIMEOUT: "The request took too long. Please try again.",
        ErrorCategory.NETWORK: "Network connection error. Please try again shortly.",
        ErrorCategory.LLM_SERVICE: "The AI service is temporarily unavailable.",
        ErrorCategory.BLOCKCHAIN: "The chain node is temporarily unavailable.",
    }
    return messages.get(category, "An error occurred. Please try again.")


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "AnemoneException",
    "ValidationError",
    "ConfigurationError",
    "LLMError",
    "LLMProviderError",
    "LLMTimeoutError",
    "ChainClientError",
    "TokenServiceError",
    "PersistenceError",
    "TaskError",
    "InvalidTaskTransitionError",
    "CommandDispatchError",
    "UnknownCommandError",
    "create_error_context",
]
