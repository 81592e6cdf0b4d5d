"""
Error types raised by the shop and turned into JSON responses in main.py.

Every error carries the HTTP status it maps to and the message shown to the
client as {"error": message}.
"""

from typing import Optional


class ShopError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ShopError):
    status_code = 400
    message = "Invalid payload"


class EmptyCart(ValidationError):
    message = "Cart items required"


class InvalidProduct(ValidationError):
    message = "Invalid product"


class AuthenticationError(ShopError):
    status_code = 401
    message = "Invalid token"


class AuthorizationError(ShopError):
    status_code = 403
    message = "Admin access required"


class NotFoundError(ShopError):
    status_code = 404
    message = "Not found"


class ConflictError(ShopError):
    status_code = 409
    message = "Email already registered"


# Invoice delivery

class DeliveryError(ShopError):
    status_code = 500
    message = "Error sending invoice"


class Unconfigured(DeliveryError):
    message = "Email service not configured. Please contact administrator to set up email credentials."


class AuthFailure(DeliveryError):
    message = "Email authentication failed. Please check email credentials."


class ConnectionFailure(DeliveryError):
    message = "Could not connect to email server. Please try again later."


class InvalidRecipient(DeliveryError):
    message = "Invalid email address. Please check the recipient email."


class DeliveryFailure(DeliveryError):
    pass


class InternalError(ShopError):
    pass
