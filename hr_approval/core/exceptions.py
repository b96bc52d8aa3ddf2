from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "SERVICE_ERROR"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(ServiceError):
    """Referenced document, user, line or process does not exist."""

    code = "NOT_FOUND"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class AccessDeniedError(ServiceError):
    """Actor is not the party authorized for this action."""

    code = "ACCESS_DENIED"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class InvalidStateError(ServiceError):
    """Action is not legal from the document's current status."""

    code = "INVALID_STATE"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class SignatureConflictError(InvalidStateError):
    """A completed signature belongs to a different signer."""

    code = "SIGNATURE_CONFLICT"

    def __init__(self, slot: str, existing_signer_id: str) -> None:
        super().__init__(f"Signature slot '{slot}' is already signed by another user")
        self.slot = slot
        self.existing_signer_id = existing_signer_id


class ValidationFailedError(ServiceError):
    """Form content is incomplete or inconsistent."""

    code = "VALIDATION_FAILED"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ConsistencyError(ServiceError):
    """Stored approval data contradicts itself. Details are logged, never returned."""

    code = "CONSISTENCY_ERROR"
    public_message = "Approval data is inconsistent. Contact an administrator."

    def __init__(self, message: str, **context) -> None:
        super().__init__(self.public_message, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.detail = message
        self.context = context

    def __str__(self) -> str:
        return self.detail


class ConcurrentUpdateError(ServiceError):
    """Document changed twice underneath the same action."""

    code = "CONCURRENT_UPDATE"

    def __init__(self, message: str = "Document was modified concurrently, please retry") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
