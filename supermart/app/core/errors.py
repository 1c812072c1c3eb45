"""Error kinds raised by the services.

Billing errors are input-validation failures. They subclass ``ValueError`` so
the endpoints translate them into HTTP 400 exactly like every other
service-level validation error. Sign-in refusals carry their own HTTP status.
"""

from __future__ import annotations

from decimal import Decimal


class BillingError(ValueError):
    """Base class for bill computation and payment failures."""


class InvalidLineItem(BillingError):
    pass


class EmptyCart(BillingError):
    def __init__(self, message: str = "No items provided for the bill") -> None:
        super().__init__(message)


class InsufficientPayment(BillingError):
    def __init__(self, message: str, shortfall: Decimal) -> None:
        super().__init__(message)
        self.shortfall = shortfall


class PaymentMismatch(BillingError):
    pass


# ─── Sign-in ─────────────────────────────────────────────────────────────────


class SignInRefused(Exception):
    status_code = 401


class InvalidCredentials(SignInRefused):
    def __init__(self, message: str = "Incorrect username, employee ID or password") -> None:
        super().__init__(message)


class AccountLocked(SignInRefused):
    status_code = 423

    def __init__(self, minutes: int) -> None:
        super().__init__(f"Account locked. Try again in {minutes} minutes.")
        self.minutes = minutes


class InactiveEmployee(SignInRefused):
    status_code = 403

    def __init__(self, message: str = "Employee account is deactivated") -> None:
        super().__init__(message)
