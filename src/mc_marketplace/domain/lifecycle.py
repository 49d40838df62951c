"""Order state machine.

status:          WAITING_SHIPPING -> IN_TRANSIT -> DELIVERED -> COMPLETED
                 any open status  -> CANCELLED | DISPUTE
delivery_status: NONE | AVAILABLE -> ACCEPTED -> IN_TRANSIT -> DELIVERED

COMPLETED and CANCELLED are terminal. DISPUTE only exits through an admin
resolution.

Two one-time codes travel with a physical order: the seller hands the
pickup code to the courier, and the buyer hands the delivery confirmation
code over only once the goods are in hand.
"""

import secrets
import string

from src.mc_common.enums import OrderStatus

OPEN_STATUSES: frozenset[str] = frozenset({
    OrderStatus.WAITING_SHIPPING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
})

TERMINAL_STATUSES: frozenset[str] = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
})

# Early payout windows; the courier leg opens only after pickup
SELLER_ANTICIPATION_STATUSES: frozenset[str] = frozenset({
    OrderStatus.WAITING_SHIPPING,
    OrderStatus.IN_TRANSIT,
})

COURIER_ANTICIPATION_STATUSES: frozenset[str] = frozenset({
    OrderStatus.IN_TRANSIT,
})

_CODE_ALPHABET = string.ascii_uppercase + string.digits
PICKUP_CODE_LENGTH = 6


def can_confirm(status: str) -> bool:
    return status in OPEN_STATUSES


def can_cancel(status: str) -> bool:
    return status in OPEN_STATUSES


def can_dispute(status: str) -> bool:
    return status in OPEN_STATUSES


def _one_time_code() -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(PICKUP_CODE_LENGTH))


def generate_pickup_code() -> str:
    return _one_time_code()


def generate_delivery_code() -> str:
    return _one_time_code()


def generate_offline_token() -> str:
    return secrets.token_urlsafe(24)
