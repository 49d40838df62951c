"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/Member
  2xxx: Ledger
  3xxx: Listing/Marketplace
  4xxx: Order lifecycle
  5xxx: Credit/Loans
  6xxx: Courier
  9xxx: System

Every business error also carries a stable ``reason`` slug that clients can
switch on (e.g. ``INSUFFICIENT_FUNDS``). The exception handler in main.py puts
it into ``data.reason`` of the error envelope.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        reason: str | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.reason = reason
        super().__init__(message)


# --- 1xxx: Auth/Member ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409, "USERNAME_EXISTS")


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409, "EMAIL_EXISTS")


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401, "INVALID_CREDENTIALS")


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403, "ACCOUNT_DISABLED")


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401, "INVALID_REFRESH_TOKEN")


class MemberNotFoundError(AppError):
    def __init__(self, member_id: str) -> None:
        super().__init__(1006, f"Member not found: {member_id}", 404, "MEMBER_NOT_FOUND")


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1007, "Administrator privileges required", 403, "ADMIN_REQUIRED")


# --- 2xxx: Ledger ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} cents, available {available} cents",
            422,
            "INSUFFICIENT_FUNDS",
        )


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(2002, f"Amount must be positive, got {amount}", 422, "INVALID_AMOUNT")


# --- 3xxx: Listing/Marketplace ---

class ListingNotFoundError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3001, f"Listing not found: {listing_id}", 404, "LISTING_NOT_FOUND")


class ItemUnavailableError(AppError):
    def __init__(self, detail: str = "One or more items are no longer available") -> None:
        super().__init__(3002, detail, 409, "ITEM_UNAVAILABLE")


class SellerMismatchError(AppError):
    def __init__(self) -> None:
        super().__init__(3003, "All items in a lot must belong to the same seller", 422, "SELLER_MISMATCH")


class SelfPurchaseError(AppError):
    def __init__(self) -> None:
        super().__init__(3004, "You cannot buy your own listing", 422, "SELF_PURCHASE")


class DeliveryOutOfRangeError(AppError):
    def __init__(self, distance_km: float, max_km: int, vehicle: str) -> None:
        super().__init__(
            3005,
            f"Delivery distance {distance_km:.1f} km exceeds {max_km} km for {vehicle}",
            422,
            "DELIVERY_OUT_OF_RANGE",
        )


class InvalidLotError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3006, f"Invalid lot: {detail}", 422, "INVALID_LOT")


class QuotaAlreadyListedError(AppError):
    def __init__(self, quota_id: str) -> None:
        super().__init__(
            3007,
            f"Quota {quota_id} already has an open listing or is held in escrow",
            409,
            "QUOTA_ALREADY_LISTED",
        )


# --- 4xxx: Order lifecycle ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4001, f"Order not found: {order_id}", 404, "ORDER_NOT_FOUND")


class OrderNotCancellableError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(
            4002,
            f"Order {order_id} in status {status} cannot be cancelled",
            422,
            "ORDER_NOT_CANCELLABLE",
        )


class OrderNotDisputableError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(
            4003,
            f"Order {order_id} in status {status} cannot be disputed",
            422,
            "ORDER_NOT_DISPUTABLE",
        )


class AlreadyDisputedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order {order_id} is already in dispute", 409, "ALREADY_DISPUTED")


class OrderNotConfirmableError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(
            4005,
            f"Order {order_id} in status {status} cannot be confirmed",
            422,
            "ORDER_NOT_CONFIRMABLE",
        )


class NotOrderPartyError(AppError):
    def __init__(self) -> None:
        super().__init__(4006, "Only the buyer or seller may perform this action", 403, "NOT_ORDER_PARTY")


class InvalidVerificationCodeError(AppError):
    def __init__(self) -> None:
        super().__init__(4007, "Verification code does not match this order", 403, "INVALID_VERIFICATION_CODE")


class AlreadyRatedError(AppError):
    def __init__(self) -> None:
        super().__init__(4008, "You have already rated this order", 409, "ALREADY_RATED")


class OrderNotRatableError(AppError):
    def __init__(self, status: str) -> None:
        super().__init__(4009, f"Only completed orders can be rated (status={status})", 422, "ORDER_NOT_RATABLE")


class OrderNotInDisputeError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4010, f"Order {order_id} is not in dispute", 422, "ORDER_NOT_IN_DISPUTE")


class OrderNotShippableError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4011, f"Order {order_id} cannot be marked as shipped", 422, "ORDER_NOT_SHIPPABLE")


class OrderNotAnticipatableError(AppError):
    def __init__(self, order_id: str, detail: str) -> None:
        super().__init__(
            4012,
            f"Order {order_id} cannot be anticipated: {detail}",
            422,
            "ORDER_NOT_ANTICIPATABLE",
        )


class AlreadyAnticipatedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4013, f"Payout for order {order_id} was already released", 409, "ALREADY_ANTICIPATED")


# --- 5xxx: Credit/Loans ---

class ScoreTooLowError(AppError):
    def __init__(self, score: int, required: int) -> None:
        super().__init__(5001, f"Score {score} is below the required {required}", 422, "SCORE_TOO_LOW")


class InsufficientQuotasError(AppError):
    def __init__(self, required: int) -> None:
        super().__init__(5002, f"At least {required} active quota(s) required", 422, "INSUFFICIENT_QUOTAS")


class UnverifiedProfileError(AppError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            5003,
            f"Profile verification incomplete: {', '.join(missing)}",
            422,
            "UNVERIFIED_PROFILE",
        )


class LimitExceededError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            5004,
            f"Credit limit exceeded: required {required} cents, available {available} cents",
            422,
            "LIMIT_EXCEEDED",
        )


class SystemCashExhaustedError(AppError):
    def __init__(self) -> None:
        super().__init__(5005, "Platform cash is temporarily insufficient for credit purchases", 503, "SYSTEM_CASH_EXHAUSTED")


class LoanNotFoundError(AppError):
    def __init__(self, loan_id: str) -> None:
        super().__init__(5006, f"Loan not found: {loan_id}", 404, "LOAN_NOT_FOUND")


class LoanNotCancellableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5007, f"Loan cannot be cancelled: {detail}", 422, "LOAN_NOT_CANCELLABLE")


class InstallmentNotPayableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5008, f"Installment cannot be paid: {detail}", 422, "INSTALLMENT_NOT_PAYABLE")


class InvalidInstallmentCountError(AppError):
    def __init__(self, count: int, maximum: int) -> None:
        super().__init__(
            5009,
            f"Installments must be between 1 and {maximum}, got {count}",
            422,
            "INVALID_INSTALLMENTS",
        )


# --- 6xxx: Courier ---

class MissionUnavailableError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(6001, f"Delivery mission for order {order_id} is not available", 409, "MISSION_UNAVAILABLE")


class NotAssignedCourierError(AppError):
    def __init__(self) -> None:
        super().__init__(6002, "You are not the courier assigned to this order", 403, "NOT_ASSIGNED_COURIER")


class InvalidPickupCodeError(AppError):
    def __init__(self) -> None:
        super().__init__(6003, "Pickup code does not match", 403, "INVALID_PICKUP_CODE")


class InvalidDeliveryStateError(AppError):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            6004,
            f"Delivery must be {expected}, current state is {actual}",
            422,
            "INVALID_DELIVERY_STATE",
        )


class CourierIsPartyError(AppError):
    def __init__(self) -> None:
        super().__init__(6005, "Buyer or seller cannot deliver their own order", 422, "COURIER_IS_PARTY")


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429, "RATE_LIMITED")


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500, "INTERNAL_ERROR")


class InvariantViolationError(AppError):
    """Aborts the unit of work. ``detail`` is for logs only, never for clients."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(9003, "Operation aborted", 500, "OPERATION_ABORTED")


class QuotaTransferError(InvariantViolationError):
    def __init__(self, quota_id: str, seller_id: str) -> None:
        super().__init__(f"quota {quota_id} is no longer owned by seller {seller_id}")


class FeeSplitError(InvariantViolationError):
    def __init__(self, amount: int, distributed: int) -> None:
        super().__init__(f"fee split mismatch: amount={amount} distributed={distributed}")
