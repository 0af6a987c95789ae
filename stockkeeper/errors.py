# stockkeeper/errors.py


class InventoryError(Exception):
    """Base class for errors surfaced to the caller of a stock operation."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class ValidationError(InventoryError):
    """Bad or missing input."""


class NotFoundError(InventoryError):
    status_code = 404


class AuthorizationError(InventoryError):
    status_code = 403


class BusinessRuleError(InventoryError):
    status_code = 409


class NoStockError(BusinessRuleError):
    pass


class StockExpiredError(BusinessRuleError):
    pass


class InsufficientStockError(BusinessRuleError):

    def __init__(self, available, requested):
        super().__init__(
            f"Insufficient stock. Available: {available}. Requested: {requested}."
        )
        self.available = available
        self.requested = requested

    def to_dict(self):
        data = super().to_dict()
        data.update(available=self.available, requested=self.requested)
        return data


class AlreadyProcessedError(BusinessRuleError):
    pass


class NotYetExpiredError(BusinessRuleError):
    pass


class LabelExhaustedError(BusinessRuleError):
    pass


class ConcurrencyError(InventoryError):
    """Raised when a versioned write loses a race with another writer."""

    status_code = 409
