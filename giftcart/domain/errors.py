# giftcart/domain/errors.py


class ServiceError(Exception):
    """Bazowy blad domeny, mapowany na stabilny kod i status HTTP."""

    status_code = 400
    default_code = "service_error"
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)


class ValidationError(ServiceError):
    default_code = "validation_error"
    default_message = "Invalid request"


class NotFoundError(ServiceError):
    status_code = 404
    default_code = "not_found"
    default_message = "Resource not found"


class IneligibleError(ServiceError):
    default_code = "coupon_ineligible"
    default_message = "Coupon cannot be applied"

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message, code=reason)


class InsufficientBalanceError(ServiceError):
    default_code = "insufficient_balance"
    default_message = "Insufficient wallet balance"


class SignatureMismatchError(ServiceError):
    default_code = "invalid_signature"
    default_message = "Payment verification failed"

    def __init__(self):
        # nie zdradzamy szczegolow weryfikacji
        super().__init__()


class ConflictError(ServiceError):
    status_code = 409
    default_code = "conflict"
    default_message = "Request conflicts with current state"


class PaymentGatewayError(ServiceError):
    status_code = 502
    default_code = "payment_gateway_unavailable"
    default_message = "Payment provider is unavailable, please retry"
