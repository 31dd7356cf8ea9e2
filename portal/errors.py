# portal/errors.py
"""Error taxonomy for the payment flow.

Handlers raise these; the errors blueprint turns them into JSON responses
of the form ``{"error": message}`` with ``status_code``.
"""


class PortalError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class Unauthorized(PortalError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Access denied"


class NotFound(PortalError):
    status_code = 404
    default_message = "Not found"


class BadRequest(PortalError):
    status_code = 400
    default_message = "Bad request"


class Conflict(PortalError):
    # the public contract answers 400 for "already paid"
    status_code = 400
    default_message = "Operation not allowed in the current invoice state"


class GatewayError(PortalError):
    """The payment gateway rejected or failed a request.

    ``description`` holds what the gateway said; it is logged but the
    response body stays opaque.
    """
    status_code = 500
    default_message = "Payment gateway error"

    def __init__(self, description: str | None = None, *, status: int | None = None, **context):
        self.description = description or "Unknown error"
        self.gateway_status = status
        super().__init__(self.default_message, **context)

    def __str__(self):
        return f"Razorpay API error: {self.description}"


class ConfigurationError(PortalError):
    status_code = 500
    default_message = "Payment gateway not configured"


class StoreError(PortalError):
    status_code = 500
    default_message = "Failed to update invoice"
