"""Custom exceptions for the retail application."""


class SaasError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['success'] = False
        rv['error'] = self.message
        return rv


class BusinessLogicError(SaasError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class InvalidRequestError(BusinessLogicError):
    """Raised for empty or malformed input."""


class InvalidStateError(BusinessLogicError):
    """Raised when a resource is not in a state that allows the operation."""


class NotFoundError(SaasError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, requested, available):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        message = f"Insufficient stock for {product_name}: available {available}, requested {requested}"
        super().__init__(message, payload={'available': available, 'requested': requested})


class AuthenticationRequiredError(SaasError):
    """Raised when no authenticated actor is attached to the request."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class AccessDeniedError(SaasError):
    """Raised when an actor reaches outside its tenant scope."""
    def __init__(self, message="Access denied"):
        super().__init__(message, 403)


class UnauthorizedError(SaasError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)


class ReferenceCollisionError(SaasError):
    """Raised when no unique sale reference could be produced."""
    def __init__(self, message="Could not generate a unique sale reference"):
        super().__init__(message, 500)


class StorageFailureError(SaasError):
    """Unexpected storage error; the message shown to callers stays generic."""
    def __init__(self, message="Internal storage error, the operation was not applied"):
        super().__init__(message, 500)
