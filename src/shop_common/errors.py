"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  3xxx: Catalog
  4xxx: Order
  6xxx: Payment
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


# --- 3xxx: Catalog ---

class ProductNotFoundError(AppError):
    def __init__(self, product_id: str) -> None:
        super().__init__(3001, f"Product not found: {product_id}", 404)


class ProductUnavailableError(AppError):
    def __init__(self, product_id: str, requested: int) -> None:
        super().__init__(
            3002,
            f"Product {product_id} is unavailable in quantity {requested}",
            409,
        )


# --- 4xxx: Order ---

class InvalidOrderError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid order: {detail}", 422)


class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order not found: {order_id}", 404)


# --- 6xxx: Payment ---

class InvalidAmountError(AppError):
    def __init__(self, amount_minor: int, minimum: int, maximum: int) -> None:
        super().__init__(
            6001,
            f"Amount {amount_minor} is outside the accepted range [{minimum}, {maximum}]",
            400,
        )


class SignatureInvalidError(AppError):
    def __init__(self) -> None:
        super().__init__(6002, "Payment signature verification failed", 400)


class AmountMismatchError(AppError):
    def __init__(self, expected_minor: int, reported_minor: int) -> None:
        super().__init__(
            6003,
            f"Payment amount mismatch: expected {expected_minor}, provider reported {reported_minor}",
            400,
        )


class GatewayUnavailableError(AppError):
    def __init__(self, detail: str = "Payment provider unavailable") -> None:
        super().__init__(6004, detail, 502)


class CodIneligibleError(AppError):
    def __init__(self, grand_total: str, ceiling: str) -> None:
        super().__init__(
            6005,
            f"Cash on delivery is not available for orders above {ceiling} (order total {grand_total})",
            400,
        )


class PaymentFailedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(6006, f"Payment for order {order_id} has failed", 400)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)
