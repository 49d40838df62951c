"""Unit tests for the order state machine helpers."""

import pytest

from src.mc_common.enums import OrderStatus
from src.mc_marketplace.domain.lifecycle import (
    COURIER_ANTICIPATION_STATUSES,
    SELLER_ANTICIPATION_STATUSES,
    can_cancel,
    can_confirm,
    can_dispute,
    generate_delivery_code,
    generate_offline_token,
    generate_pickup_code,
)

OPEN = [OrderStatus.WAITING_SHIPPING, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED]
CLOSED = [OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.DISPUTE]


@pytest.mark.parametrize("status", OPEN)
def test_open_statuses_allow_everything(status: OrderStatus) -> None:
    assert can_confirm(status.value)
    assert can_cancel(status.value)
    assert can_dispute(status.value)


@pytest.mark.parametrize("status", CLOSED)
def test_closed_statuses_allow_nothing(status: OrderStatus) -> None:
    assert not can_confirm(status.value)
    assert not can_cancel(status.value)
    assert not can_dispute(status.value)


def test_pickup_code_shape() -> None:
    code = generate_pickup_code()
    assert len(code) == 6
    assert code.isalnum()
    assert code == code.upper()


def test_offline_tokens_are_unique() -> None:
    assert len({generate_offline_token() for _ in range(50)}) == 50


def test_delivery_code_shape() -> None:
    code = generate_delivery_code()
    assert len(code) == 6
    assert code.isalnum()


def test_courier_leg_only_anticipates_in_transit() -> None:
    assert OrderStatus.IN_TRANSIT in COURIER_ANTICIPATION_STATUSES
    assert OrderStatus.WAITING_SHIPPING not in COURIER_ANTICIPATION_STATUSES
    assert OrderStatus.WAITING_SHIPPING in SELLER_ANTICIPATION_STATUSES
    assert OrderStatus.DELIVERED not in SELLER_ANTICIPATION_STATUSES
