from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """Expected, caller-facing failure of a well-formed request."""

    error = "Service Error"
    retryable = False

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class NotFoundError(ServiceError):
    error = "Not Found"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class MissingFieldError(ServiceError):
    error = "Missing Field"

    def __init__(self, field: str):
        self.field = field
        super().__init__(status.HTTP_400_BAD_REQUEST, f"{field} is required")


class InvalidStatusError(ServiceError):
    error = "Invalid Status"

    def __init__(self, detail: str = "Invalid status value"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class ForbiddenError(ServiceError):
    error = "Forbidden"

    def __init__(self, detail: str = "Not allowed to modify this resource"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)


class SlotUnavailableError(ServiceError):
    """The requested slot is booked or lost a concurrent booking race."""

    error = "Slot Unavailable"
    retryable = True

    def __init__(self, detail: str = "The requested slot is no longer available"):
        super().__init__(status.HTTP_409_CONFLICT, detail)
