"""Unit tests for EscrowService: balance purchases and the order lifecycle."""

from unittest.mock import AsyncMock, call

import pytest

from src.mc_common.enums import (
    BalanceDirection,
    ItemType,
    LedgerEntryType,
    OrderStatus,
    PaymentMethod,
    PayoutLeg,
)
from src.mc_common.errors import (
    AlreadyAnticipatedError,
    AlreadyDisputedError,
    AlreadyRatedError,
    InsufficientBalanceError,
    InvalidLotError,
    InvalidVerificationCodeError,
    ItemUnavailableError,
    NotOrderPartyError,
    OrderNotAnticipatableError,
    OrderNotCancellableError,
    OrderNotConfirmableError,
    OrderNotRatableError,
    QuotaAlreadyListedError,
    QuotaTransferError,
    SelfPurchaseError,
    SellerMismatchError,
)
from src.mc_ledger.domain.models import BalanceCheck, ReserveDeltas
from src.mc_marketplace.application.schemas import CreateListingRequest, PurchaseRequest
from src.mc_marketplace.application.service import EscrowService
from src.mc_marketplace.domain.models import OrderItem

from factories import make_listing, make_member, make_order


class _Deps:
    def __init__(self) -> None:
        self.repo = AsyncMock()
        self.ledger = AsyncMock()
        self.credit = AsyncMock()
        self.loans = AsyncMock()
        self.quotas = AsyncMock()
        self.db = AsyncMock()
        self.members = {
            "buyer-1": make_member("buyer-1", balance=50_000),
            "seller-1": make_member("seller-1", balance=0),
        }
        self.ledger.get_member.side_effect = lambda db, member_id: self.members.get(member_id)
        self.ledger.with_locked_balance.return_value = BalanceCheck(sufficient=True, current_balance=50_000)
        self.ledger.adjust_balance.return_value = 40_000
        self.ledger.record_entry.return_value = 1
        self.repo.mark_listings_sold.return_value = 1
        self.repo.insert_order.return_value = "order-1"
        self.repo.get_order_by_offline_token.return_value = None

    def service(self) -> EscrowService:
        return EscrowService(
            repo=self.repo,
            ledger=self.ledger,
            credit=self.credit,
            loans=self.loans,
            quotas=self.quotas,
        )


@pytest.fixture
def deps() -> _Deps:
    return _Deps()


def _credits(deps: _Deps) -> list[tuple[str, int]]:
    return [
        (c.args[1], c.args[2])
        for c in deps.ledger.adjust_balance.await_args_list
        if c.args[3] == BalanceDirection.CREDIT
    ]


class TestPurchaseListing:
    async def test_self_pickup_purchase_holds_funds(self, deps: _Deps) -> None:
        deps.repo.get_listings.return_value = [make_listing()]

        result = await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

        assert result.order_id == "order-1"
        assert result.status == OrderStatus.WAITING_SHIPPING
        assert result.total_charged_cents == 10_000
        assert result.fee_cents == 2_750
        assert result.delivery_confirmation_code is not None
        assert "pickup_code" not in result.model_dump()
        deps.ledger.adjust_balance.assert_awaited_once_with(deps.db, "buyer-1", 10_000, BalanceDirection.DEBIT)
        entry = deps.ledger.record_entry.await_args
        assert entry.args[2] == LedgerEntryType.MARKET_PURCHASE
        assert entry.args[3] == -10_000
        order = deps.repo.insert_order.await_args.args[1]
        assert order.seller_amount + order.fee_amount == order.amount
        assert not order.seller_released
        deps.db.commit.assert_awaited_once()

    async def test_verified_seller_pays_lower_fee(self, deps: _Deps) -> None:
        deps.members["seller-1"] = make_member("seller-1", is_verified_seller=True)
        deps.repo.get_listings.return_value = [make_listing()]
        result = await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))
        assert result.fee_cents == 1_200

    async def test_welcome_benefit_halves_fee(self, deps: _Deps) -> None:
        deps.members["buyer-1"] = make_member("buyer-1", referred_by="ref-1", welcome_benefit_uses=1)
        deps.ledger.consume_welcome_benefit.return_value = True
        deps.repo.get_listings.return_value = [make_listing()]

        result = await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

        assert result.welcome_benefit_applied
        assert result.fee_cents == 1_375

    async def test_welcome_lost_to_concurrent_purchase(self, deps: _Deps) -> None:
        deps.members["buyer-1"] = make_member("buyer-1", referred_by="ref-1", welcome_benefit_uses=2)
        deps.ledger.consume_welcome_benefit.return_value = False
        deps.repo.get_listings.return_value = [make_listing()]

        result = await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

        assert not result.welcome_benefit_applied
        assert result.fee_cents == 2_750

    async def test_insufficient_funds_claims_nothing(self, deps: _Deps) -> None:
        deps.repo.get_listings.return_value = [make_listing()]
        deps.ledger.with_locked_balance.return_value = BalanceCheck(sufficient=False, current_balance=500)

        with pytest.raises(InsufficientBalanceError):
            await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

        deps.repo.mark_listings_sold.assert_not_awaited()
        deps.repo.insert_order.assert_not_awaited()
        deps.db.rollback.assert_awaited_once()
        deps.db.commit.assert_not_awaited()

    async def test_listing_sold_meanwhile(self, deps: _Deps) -> None:
        deps.repo.get_listings.return_value = [make_listing()]
        deps.repo.mark_listings_sold.return_value = 0

        with pytest.raises(ItemUnavailableError):
            await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

        deps.ledger.adjust_balance.assert_not_awaited()
        deps.db.rollback.assert_awaited_once()

    async def test_inactive_listing(self, deps: _Deps) -> None:
        deps.repo.get_listings.return_value = [make_listing(status="SOLD")]
        with pytest.raises(ItemUnavailableError):
            await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

    async def test_mixed_sellers(self, deps: _Deps) -> None:
        deps.repo.get_listings.return_value = [make_listing("a"), make_listing("b", seller_id="seller-2")]
        with pytest.raises(SellerMismatchError):
            await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["a", "b"]))

    async def test_own_listing(self, deps: _Deps) -> None:
        deps.repo.get_listings.return_value = [make_listing(seller_id="buyer-1")]
        with pytest.raises(SelfPurchaseError):
            await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

    async def test_digital_item_settles_immediately(self, deps: _Deps) -> None:
        deps.repo.get_listings.return_value = [make_listing(item_type=ItemType.DIGITAL.value)]

        result = await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

        assert result.status == OrderStatus.COMPLETED
        assert result.delivery_fee_cents == 0
        assert ("seller-1", 7_250) in _credits(deps)
        fee_deltas = deps.ledger.increment_system_reserves.await_args.args[1]
        assert fee_deltas.total() == 2_750
        deps.db.commit.assert_awaited_once()

    async def test_offline_token_replay_returns_existing_order(self, deps: _Deps) -> None:
        deps.repo.get_order_by_offline_token.return_value = make_order(
            payment_method=PaymentMethod.OFFLINE_QR.value, offline_token="tok-123456"
        )
        req = PurchaseRequest(listing_ids=["listing-1"], payment_method="OFFLINE_QR", offline_token="tok-123456")

        result = await deps.service().purchase_listing(deps.db, "buyer-1", req)

        assert result.order_id == "order-1"
        deps.ledger.with_locked_balance.assert_not_awaited()
        deps.db.commit.assert_not_awaited()

    async def test_offline_token_of_another_buyer(self, deps: _Deps) -> None:
        deps.repo.get_order_by_offline_token.return_value = make_order(buyer_id="someone-else")
        req = PurchaseRequest(listing_ids=["listing-1"], payment_method="OFFLINE_QR", offline_token="tok-123456")
        with pytest.raises(ItemUnavailableError):
            await deps.service().purchase_listing(deps.db, "buyer-1", req)


class TestConfirmReceipt:
    async def test_buyer_confirmation_pays_seller_and_courier(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(
            delivery_fee=1_500, courier_id="courier-1", status=OrderStatus.DELIVERED.value
        )

        result = await deps.service().confirm_receipt(deps.db, "order-1", "buyer-1")

        assert result.status == OrderStatus.COMPLETED
        credits = _credits(deps)
        assert ("seller-1", 7_250) in credits
        # 10% of the delivery fee stays with the platform
        assert ("courier-1", 1_350) in credits
        deps.ledger.adjust_score.assert_any_await(deps.db, "courier-1", 10, "delivery completed")
        deps.repo.complete_order.assert_awaited_once_with(deps.db, "order-1")
        deps.db.commit.assert_awaited_once()

    async def test_shipping_fee_goes_to_seller_without_courier(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(delivery_fee=1_500)
        await deps.service().confirm_receipt(deps.db, "order-1", "buyer-1")
        assert ("seller-1", 1_500) in _credits(deps)

    async def test_credit_order_draws_system_cash(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(
            delivery_fee=1_500, payment_method=PaymentMethod.CRED30_CREDIT.value
        )
        await deps.service().confirm_receipt(deps.db, "order-1", "buyer-1")
        assert call(deps.db, ReserveDeltas(system_balance=-11_500)) in deps.ledger.increment_system_reserves.await_args_list

    async def test_seller_needs_code(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order()
        with pytest.raises(NotOrderPartyError):
            await deps.service().confirm_receipt(deps.db, "order-1", "seller-1")
        deps.db.rollback.assert_awaited_once()

    async def test_wrong_code(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order()
        with pytest.raises(InvalidVerificationCodeError):
            await deps.service().confirm_receipt(deps.db, "order-1", "seller-1", "ZZZZZZ")

    async def test_seller_with_delivery_code(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order()
        result = await deps.service().confirm_receipt(deps.db, "order-1", "seller-1", "DLV456")
        assert result.status == OrderStatus.COMPLETED

    async def test_courier_holding_pickup_code_cannot_complete(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(
            delivery_fee=1_500,
            courier_id="courier-1",
            status=OrderStatus.IN_TRANSIT.value,
            pickup_code="ABC123",
        )

        with pytest.raises(InvalidVerificationCodeError):
            await deps.service().confirm_receipt(deps.db, "order-1", "courier-1", "ABC123")

        deps.repo.complete_order.assert_not_awaited()
        deps.ledger.adjust_balance.assert_not_awaited()
        deps.db.rollback.assert_awaited_once()
        deps.db.commit.assert_not_awaited()

    async def test_courier_with_buyer_delivery_code(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(
            delivery_fee=1_500, courier_id="courier-1", status=OrderStatus.DELIVERED.value
        )
        result = await deps.service().confirm_receipt(deps.db, "order-1", "courier-1", "DLV456")
        assert result.status == OrderStatus.COMPLETED
        assert ("courier-1", 1_350) in _credits(deps)

    async def test_offline_token_confirms(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(
            payment_method=PaymentMethod.OFFLINE_QR.value, offline_token="tok-123456"
        )
        result = await deps.service().confirm_receipt(deps.db, "order-1", "seller-1", "tok-123456")
        assert result.status == OrderStatus.COMPLETED

    async def test_already_completed(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(status=OrderStatus.COMPLETED.value)
        with pytest.raises(OrderNotConfirmableError):
            await deps.service().confirm_receipt(deps.db, "order-1", "buyer-1")
        deps.ledger.adjust_balance.assert_not_awaited()

    async def test_quota_transfer_and_score(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(
            items=[OrderItem(listing_id="listing-1", title="Quota", price=10_000, quota_id="quota-1")]
        )
        deps.quotas.transfer_quota.return_value = True

        await deps.service().confirm_receipt(deps.db, "order-1", "buyer-1")

        deps.quotas.transfer_quota.assert_awaited_once_with(deps.db, "quota-1", "seller-1", "buyer-1")
        deps.ledger.adjust_score.assert_any_await(deps.db, "buyer-1", 50, "quota acquired")
        deps.ledger.adjust_score.assert_any_await(deps.db, "seller-1", 20, "quota sold")

    async def test_quota_no_longer_owned_aborts_everything(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(
            items=[OrderItem(listing_id="listing-1", title="Quota", price=10_000, quota_id="quota-1")]
        )
        deps.quotas.transfer_quota.return_value = False

        with pytest.raises(QuotaTransferError):
            await deps.service().confirm_receipt(deps.db, "order-1", "buyer-1")

        deps.ledger.adjust_balance.assert_not_awaited()
        deps.db.rollback.assert_awaited_once()
        deps.db.commit.assert_not_awaited()


class TestCancelOrder:
    async def test_refunds_total_charged(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(delivery_fee=1_500)

        result = await deps.service().cancel_order(deps.db, "order-1", "buyer-1")

        assert result.status == OrderStatus.CANCELLED
        deps.repo.update_order_status.assert_awaited_once_with(deps.db, "order-1", "CANCELLED")
        deps.repo.reactivate_listings.assert_awaited_once_with(deps.db, "order-1")
        deps.ledger.adjust_balance.assert_awaited_once_with(deps.db, "buyer-1", 11_500, BalanceDirection.CREDIT)
        assert deps.ledger.record_entry.await_args.args[2] == LedgerEntryType.MARKET_REFUND
        deps.db.commit.assert_awaited_once()

    async def test_credit_order_voids_loan(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(payment_method=PaymentMethod.CRED30_CREDIT.value)
        deps.loans.cancel_order_loan.return_value = "loan-1"

        await deps.service().cancel_order(deps.db, "order-1", "seller-1")

        deps.loans.cancel_order_loan.assert_awaited_once_with(deps.db, "order-1", "buyer-1")
        deps.ledger.adjust_balance.assert_not_awaited()
        entry = deps.ledger.record_entry.await_args
        assert entry.args[2] == LedgerEntryType.MARKET_REFUND_CREDIT
        assert entry.args[3] == 0

    async def test_disputed_order_cannot_be_cancelled(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(status=OrderStatus.DISPUTE.value)
        with pytest.raises(OrderNotCancellableError):
            await deps.service().cancel_order(deps.db, "order-1", "buyer-1")

    async def test_outsider(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order()
        with pytest.raises(NotOrderPartyError):
            await deps.service().cancel_order(deps.db, "order-1", "stranger")


class TestDisputeAndRating:
    async def test_open_dispute(self, deps: _Deps) -> None:
        deps.repo.get_order.return_value = make_order()
        deps.repo.mark_disputed.return_value = True
        result = await deps.service().open_dispute(deps.db, "order-1", "buyer-1", "never arrived")
        assert result.status == OrderStatus.DISPUTE
        deps.db.commit.assert_awaited_once()

    async def test_second_dispute(self, deps: _Deps) -> None:
        deps.repo.get_order.side_effect = [make_order(), make_order(status=OrderStatus.DISPUTE.value)]
        deps.repo.mark_disputed.return_value = False
        with pytest.raises(AlreadyDisputedError):
            await deps.service().open_dispute(deps.db, "order-1", "buyer-1", "again")

    async def test_rating_moves_score(self, deps: _Deps) -> None:
        deps.repo.get_order.return_value = make_order(status=OrderStatus.COMPLETED.value)
        deps.repo.insert_rating.return_value = True

        result = await deps.service().rate_order(deps.db, "order-1", "buyer-1", 5)

        assert result.rated_member_id == "seller-1"
        assert result.score_delta == 50
        args = deps.ledger.adjust_score.await_args.args
        assert args[1:3] == ("seller-1", 50)

    async def test_zero_rating_leaves_score(self, deps: _Deps) -> None:
        deps.repo.get_order.return_value = make_order(status=OrderStatus.COMPLETED.value)
        deps.repo.insert_rating.return_value = True
        await deps.service().rate_order(deps.db, "order-1", "seller-1", 0)
        deps.ledger.adjust_score.assert_not_awaited()

    async def test_rate_twice(self, deps: _Deps) -> None:
        deps.repo.get_order.return_value = make_order(status=OrderStatus.COMPLETED.value)
        deps.repo.insert_rating.return_value = False
        with pytest.raises(AlreadyRatedError):
            await deps.service().rate_order(deps.db, "order-1", "buyer-1", 3)

    async def test_rate_open_order(self, deps: _Deps) -> None:
        deps.repo.get_order.return_value = make_order()
        with pytest.raises(OrderNotRatableError):
            await deps.service().rate_order(deps.db, "order-1", "buyer-1", 3)


class TestCreateListing:
    async def test_quota_listing_locks_the_quota(self, deps: _Deps) -> None:
        deps.quotas.lock_owned_quota.return_value = object()
        deps.repo.quota_in_escrow.return_value = False
        deps.repo.create_listing.return_value = make_listing(quota_id="quota-1")

        result = await deps.service().create_listing(
            deps.db, "seller-1", CreateListingRequest(title="Quota", price_cents=5_000, quota_id="quota-1")
        )

        assert result.quota_id == "quota-1"
        deps.quotas.lock_owned_quota.assert_awaited_once_with(deps.db, "quota-1", "seller-1")
        deps.db.commit.assert_awaited_once()

    async def test_quota_already_listed(self, deps: _Deps) -> None:
        deps.quotas.lock_owned_quota.return_value = object()
        deps.repo.quota_in_escrow.return_value = True

        with pytest.raises(QuotaAlreadyListedError):
            await deps.service().create_listing(
                deps.db, "seller-1", CreateListingRequest(title="Quota", price_cents=5_000, quota_id="quota-1")
            )

        deps.repo.create_listing.assert_not_awaited()
        deps.db.rollback.assert_awaited_once()

    async def test_quota_not_owned(self, deps: _Deps) -> None:
        deps.quotas.lock_owned_quota.return_value = None
        with pytest.raises(InvalidLotError):
            await deps.service().create_listing(
                deps.db, "seller-1", CreateListingRequest(title="Quota", price_cents=5_000, quota_id="quota-1")
            )
        deps.repo.quota_in_escrow.assert_not_awaited()

    async def test_plain_listing_skips_quota_checks(self, deps: _Deps) -> None:
        deps.repo.create_listing.return_value = make_listing()
        await deps.service().create_listing(deps.db, "seller-1", CreateListingRequest(title="Lamp", price_cents=2_000))
        deps.quotas.lock_owned_quota.assert_not_awaited()
        deps.repo.quota_in_escrow.assert_not_awaited()


class TestSettlement:
    async def test_members_locked_in_id_order_before_any_write(self, deps: _Deps) -> None:
        order = make_order(
            buyer_id="zed-buyer",
            seller_id="amy-seller",
            courier_id="mid-courier",
            delivery_fee=1_500,
            items=[OrderItem(listing_id="listing-1", title="Quota", price=10_000, quota_id="quota-1")],
        )
        deps.quotas.transfer_quota.return_value = True

        await deps.service().settle_order(deps.db, order, release_seller=True)

        locked = [c.args[1] for c in deps.ledger.lock_member.await_args_list]
        assert locked == ["amy-seller", "mid-courier", "zed-buyer"]
        names = [c[0] for c in deps.ledger.mock_calls]
        last_lock = max(i for i, n in enumerate(names) if n == "lock_member")
        first_write = min(i for i, n in enumerate(names) if n in ("adjust_balance", "adjust_score"))
        assert last_lock < first_write

    async def test_digital_purchase_locks_both_parties_in_id_order(self, deps: _Deps) -> None:
        deps.members["a-seller"] = make_member("a-seller", balance=0)
        deps.repo.get_listings.return_value = [
            make_listing(seller_id="a-seller", item_type=ItemType.DIGITAL.value)
        ]

        await deps.service().purchase_listing(deps.db, "buyer-1", PurchaseRequest(listing_ids=["listing-1"]))

        locked = [c.args[1] for c in deps.ledger.lock_member.await_args_list]
        assert locked[:2] == ["a-seller", "buyer-1"]

    async def test_anticipated_legs_are_not_paid_twice(self, deps: _Deps) -> None:
        order = make_order(
            delivery_fee=1_500,
            courier_id="courier-1",
            status=OrderStatus.DELIVERED.value,
            seller_released=True,
            courier_released=True,
        )
        deps.repo.lock_order.return_value = order

        await deps.service().confirm_receipt(deps.db, "order-1", "buyer-1")

        assert _credits(deps) == []
        reserve_calls = deps.ledger.increment_system_reserves.await_args_list
        # escrow fee and logistics cut still leave escrow
        assert sum(c.args[1].total() for c in reserve_calls) == 2_750 + 150
        deps.ledger.adjust_score.assert_any_await(deps.db, "courier-1", 10, "delivery completed")

    async def test_unwind_claws_back_anticipated_seller_leg(self, deps: _Deps) -> None:
        order = make_order(status=OrderStatus.DISPUTE.value, seller_released=True)

        await deps.service().unwind_order(deps.db, order)

        assert deps.ledger.adjust_balance.await_args_list == [
            call(deps.db, "seller-1", 7_250, BalanceDirection.DEBIT),
            call(deps.db, "buyer-1", 10_000, BalanceDirection.CREDIT),
        ]
        entry_types = [c.args[2] for c in deps.ledger.record_entry.await_args_list]
        assert entry_types == [LedgerEntryType.MARKET_CLAWBACK, LedgerEntryType.MARKET_REFUND]

    async def test_unwind_fails_when_payee_cannot_return_payout(self, deps: _Deps) -> None:
        order = make_order(status=OrderStatus.DISPUTE.value, seller_released=True)
        deps.ledger.adjust_balance.side_effect = InsufficientBalanceError(7_250, 100)

        with pytest.raises(InsufficientBalanceError):
            await deps.service().unwind_order(deps.db, order)

    async def test_cancel_refused_after_anticipation(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(seller_released=True)
        with pytest.raises(OrderNotCancellableError):
            await deps.service().cancel_order(deps.db, "order-1", "buyer-1")
        deps.ledger.adjust_balance.assert_not_awaited()
        deps.db.rollback.assert_awaited_once()


class TestAnticipate:
    async def test_seller_takes_early_payout_minus_fee(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(status=OrderStatus.IN_TRANSIT.value)
        deps.repo.mark_leg_released.return_value = True

        result = await deps.service().anticipate(deps.db, "order-1", "seller-1")

        assert (result.leg, result.gross_cents, result.fee_cents, result.net_cents) == ("SELLER", 7_250, 363, 6_887)
        deps.repo.mark_leg_released.assert_awaited_once_with(deps.db, "order-1", PayoutLeg.SELLER)
        deps.ledger.adjust_balance.assert_awaited_once_with(deps.db, "seller-1", 6_887, BalanceDirection.CREDIT)
        entry = deps.ledger.record_entry.await_args
        assert entry.args[2] == LedgerEntryType.MARKET_ANTICIPATION
        assert entry.kwargs["metadata"]["anticipation_fee"] == 363
        deps.ledger.increment_system_reserves.assert_awaited_once_with(deps.db, ReserveDeltas(profit_pool=363))
        deps.db.commit.assert_awaited_once()

    async def test_courier_takes_early_payout_of_delivery_leg(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(
            delivery_fee=1_500, courier_id="courier-1", status=OrderStatus.IN_TRANSIT.value
        )
        deps.repo.mark_leg_released.return_value = True

        result = await deps.service().anticipate(deps.db, "order-1", "courier-1")

        assert (result.gross_cents, result.fee_cents, result.net_cents) == (1_350, 68, 1_282)
        deps.repo.mark_leg_released.assert_awaited_once_with(deps.db, "order-1", PayoutLeg.COURIER)
        deps.ledger.adjust_balance.assert_awaited_once_with(deps.db, "courier-1", 1_282, BalanceDirection.CREDIT)

    async def test_courier_must_have_picked_up(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(delivery_fee=1_500, courier_id="courier-1")
        with pytest.raises(OrderNotAnticipatableError):
            await deps.service().anticipate(deps.db, "order-1", "courier-1")
        deps.repo.mark_leg_released.assert_not_awaited()

    async def test_seller_window_closes_on_delivery(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(status=OrderStatus.DELIVERED.value)
        with pytest.raises(OrderNotAnticipatableError):
            await deps.service().anticipate(deps.db, "order-1", "seller-1")

    async def test_credit_orders_cannot_anticipate(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(payment_method=PaymentMethod.CRED30_CREDIT.value)
        with pytest.raises(OrderNotAnticipatableError):
            await deps.service().anticipate(deps.db, "order-1", "seller-1")

    async def test_second_anticipation(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order(seller_released=True)
        with pytest.raises(AlreadyAnticipatedError):
            await deps.service().anticipate(deps.db, "order-1", "seller-1")
        deps.ledger.adjust_balance.assert_not_awaited()

    async def test_flag_lost_to_concurrent_release(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order()
        deps.repo.mark_leg_released.return_value = False
        with pytest.raises(AlreadyAnticipatedError):
            await deps.service().anticipate(deps.db, "order-1", "seller-1")
        deps.ledger.adjust_balance.assert_not_awaited()
        deps.db.rollback.assert_awaited_once()
        deps.db.commit.assert_not_awaited()

    async def test_buyer_cannot_anticipate(self, deps: _Deps) -> None:
        deps.repo.lock_order.return_value = make_order()
        with pytest.raises(NotOrderPartyError):
            await deps.service().anticipate(deps.db, "order-1", "buyer-1")
