"""Builders for domain objects shared by the unit tests."""

from typing import Any

from src.mc_ledger.domain.models import Member, SystemReserve
from src.mc_marketplace.domain.models import Listing, MarketplaceOrder, OrderItem


def make_member(member_id: str, balance: int = 100_000, score: int = 500, **kwargs: Any) -> Member:
    return Member(id=member_id, score=score, balance=balance, **kwargs)


def make_verified_member(member_id: str, balance: int = 0, **kwargs: Any) -> Member:
    return make_member(
        member_id,
        balance,
        identity_verified=True,
        payment_key="pay-key",
        phone_verified=True,
        **kwargs,
    )


def make_listing(
    listing_id: str = "listing-1",
    seller_id: str = "seller-1",
    price: int = 10_000,
    **kwargs: Any,
) -> Listing:
    return Listing(id=listing_id, seller_id=seller_id, title=f"Item {listing_id}", price=price, **kwargs)


def make_reserve(system_balance: int = 0) -> SystemReserve:
    return SystemReserve(
        system_balance=system_balance,
        profit_pool=0,
        total_tax_reserve=0,
        total_operational_reserve=0,
        total_owner_profit=0,
        investment_reserve=0,
        total_corporate_investment_reserve=0,
        mutual_reserve=0,
    )


def make_order(
    order_id: str = "order-1",
    amount: int = 10_000,
    fee_amount: int = 2_750,
    delivery_fee: int = 0,
    buyer_id: str = "buyer-1",
    seller_id: str = "seller-1",
    items: list[OrderItem] | None = None,
    **kwargs: Any,
) -> MarketplaceOrder:
    return MarketplaceOrder(
        id=order_id,
        buyer_id=buyer_id,
        seller_id=seller_id,
        amount=amount,
        fee_amount=fee_amount,
        seller_amount=amount - fee_amount,
        delivery_fee=delivery_fee,
        total_charged=amount + delivery_fee,
        pickup_code=kwargs.pop("pickup_code", "ABC123"),
        delivery_confirmation_code=kwargs.pop("delivery_confirmation_code", "DLV456"),
        items=items or [OrderItem(listing_id="listing-1", title="Item", price=amount)],
        **kwargs,
    )
