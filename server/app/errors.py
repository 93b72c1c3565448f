"""Domain error taxonomy.

Every error carries a stable ``code`` (used in API responses and by the
client transport) and the HTTP status the API layer renders it with.
Business-rule errors are terminal for the call that raised them; only
``RetryableConflict`` signals that repeating the identical request makes
sense.
"""


class FulfilmentError(Exception):
    code = "FULFILMENT_ERROR"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(FulfilmentError):
    code = "VALIDATION_ERROR"
    status_code = 400


class DuplicateOrderNumber(FulfilmentError):
    code = "DUPLICATE_ORDER_NUMBER"
    status_code = 409


class NotFound(FulfilmentError):
    code = "NOT_FOUND"
    status_code = 404


class InsufficientRemainingQuantity(FulfilmentError):
    code = "INSUFFICIENT_REMAINING_QUANTITY"
    status_code = 409

    def __init__(self, *, line_id: int, requested, remaining):
        self.line_id = line_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Requested quantity ({requested}) exceeds remaining quantity ({remaining}) on line {line_id}."
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail.update({"requested": str(self.requested), "remaining": str(self.remaining)})
        return detail


class InvalidStatusTransition(FulfilmentError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, current: str, requested: str, entity: str = "Release"):
        self.current = current
        self.requested = requested
        super().__init__(f"{entity} transition {current} -> {requested} is not allowed.")


class AlreadyDelivered(FulfilmentError):
    code = "ALREADY_DELIVERED"
    status_code = 409

    def __init__(self, release_id: int):
        self.release_id = release_id
        super().__init__(f"Release {release_id} is already delivered.")


class InsufficientStock(FulfilmentError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, *, item_id: int, available, requested):
        self.item_id = item_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for item {item_id}. Current: {available}, Requested: {requested}"
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail.update({"available": str(self.available), "requested": str(self.requested)})
        return detail


class RetryableConflict(FulfilmentError):
    code = "RETRYABLE_CONFLICT"
    status_code = 409


class Unauthorized(FulfilmentError):
    code = "UNAUTHORIZED"
    status_code = 403


class ImmutableRecordError(FulfilmentError):
    code = "IMMUTABLE_RECORD"
    status_code = 409
