"""Typed domain errors

Every error carries a stable ``code`` (API-safe English tag), a localized
``message`` and an HTTP ``status_code``. Services raise these; the handler in
``app.main`` renders them into the standard error envelope.

    DomainError
    +-- ValidationError        400  VALIDATION_ERROR
    +-- NotFoundError          404  NOT_FOUND
    +-- StatePreconditionError 400  STATE_PRECONDITION
    +-- SlipRequiredError      400  SLIP_REQUIRED
    +-- ConflictRetryableError 500  CONFLICT_RETRYABLE
    +-- ExternalServiceError   502  EXTERNAL_SERVICE_ERROR
"""

from typing import Any, Dict, List, Optional

from app.core.messages import get_message


class DomainError(Exception):
    """Base class for all business errors"""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        message_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message_key = message_key or self.code
        self.message = message or get_message(self.message_key)
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError):
    """Malformed input or unparseable sheet"""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        message_key: Optional[str] = None,
        fields: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.fields = fields or []
        details = dict(details or {})
        if self.fields:
            details["fields"] = self.fields
        super().__init__(message, message_key=message_key, details=details)


class NotFoundError(DomainError):
    """Referenced entity is absent or tombstoned"""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any = None, *, message_key: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        details = {"entity": entity}
        if entity_id is not None:
            details["id"] = entity_id
        super().__init__(message_key=message_key, details=details)


class StatePreconditionError(DomainError):
    """Operation not allowed from the entity's current status"""

    code = "STATE_PRECONDITION"
    status_code = 400

    def __init__(
        self,
        observed_status: Optional[int],
        *,
        message_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.observed_status = observed_status
        details = dict(details or {})
        details["current_status"] = observed_status
        super().__init__(message_key=message_key, details=details)


class SlipRequiredError(DomainError):
    """Payment submitted without a valid slip attachment"""

    code = "SLIP_REQUIRED"
    status_code = 400


class ConflictRetryableError(DomainError):
    """Identifier allocation kept colliding; safe for the client to retry"""

    code = "CONFLICT_RETRYABLE"
    status_code = 500


class ExternalServiceError(DomainError):
    """A required collaborator (portal, PDF renderer, storage) failed"""

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502

    def __init__(self, service: str, *, message_key: Optional[str] = None, reason: Optional[str] = None):
        self.service = service
        details: Dict[str, Any] = {"service": service}
        if reason:
            details["reason"] = reason
        super().__init__(message_key=message_key, details=details)
