"""EscrowService: marketplace purchases and the order lifecycle.

Every public write is one unit of work:
  try: ... ; await db.commit()
  except Exception: await db.rollback(); raise

Lock order is fixed: order row -> member rows in ascending id order ->
system_reserve. Purchases have no order row yet and start at the member rows.
Settlement, unwinding and early payouts lock every member they may write,
sorted, before the first balance or score update.

settle_order / unwind_order run inside a caller's unit of work so that admin
dispute resolution reuses exactly the same money movements.
"""

import dataclasses
import logging
import secrets

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mc_common.cents import cents_to_display
from src.mc_common.enums import (
    BalanceDirection,
    DeliveryStatus,
    DeliveryType,
    LedgerEntryType,
    ListingStatus,
    OrderStatus,
    PaymentMethod,
    PayoutLeg,
)
from src.mc_common.errors import (
    AlreadyAnticipatedError,
    AlreadyDisputedError,
    AlreadyRatedError,
    InsufficientBalanceError,
    InsufficientQuotasError,
    InvalidInstallmentCountError,
    InvalidLotError,
    InvalidVerificationCodeError,
    ItemUnavailableError,
    LimitExceededError,
    ListingNotFoundError,
    MemberNotFoundError,
    NotOrderPartyError,
    OrderNotAnticipatableError,
    OrderNotCancellableError,
    OrderNotConfirmableError,
    OrderNotDisputableError,
    OrderNotFoundError,
    OrderNotRatableError,
    OrderNotShippableError,
    QuotaAlreadyListedError,
    QuotaTransferError,
    ScoreTooLowError,
    SelfPurchaseError,
    SellerMismatchError,
    SystemCashExhaustedError,
    UnverifiedProfileError,
)
from src.mc_common.notify import notify
from src.mc_credit.application.service import CreditAnalysisService
from src.mc_fees.domain.shares import (
    ANTICIPATION,
    LOGISTICS_SUSTAINABILITY,
    MARKETPLACE_ESCROW,
)
from src.mc_fees.infrastructure.distributor import distribute_fee
from src.mc_ledger.domain.models import Member, ReserveDeltas
from src.mc_ledger.domain.repository import LedgerRepositoryProtocol
from src.mc_ledger.infrastructure.persistence import LedgerRepository
from src.mc_loans.application.service import LoanService
from src.mc_marketplace.application.schemas import (
    AnticipationResponse,
    CreateListingRequest,
    CreditPurchaseRequest,
    ListingResponse,
    OrderActionResponse,
    OrderListResponse,
    OrderResponse,
    PurchaseRequest,
    PurchaseResponse,
    RatingResponse,
)
from src.mc_marketplace.domain.lifecycle import (
    COURIER_ANTICIPATION_STATUSES,
    SELLER_ANTICIPATION_STATUSES,
    can_cancel,
    can_confirm,
    generate_delivery_code,
    generate_offline_token,
    generate_pickup_code,
)
from src.mc_marketplace.domain.models import (
    DeliveryOptions,
    Listing,
    MarketplaceOrder,
    OrderItem,
    OrderOrigin,
    PricedLot,
)
from src.mc_marketplace.domain.pricing import (
    anticipation_fee,
    courier_payout,
    escrow_fee,
    escrow_rate_bps,
    price_lot,
    welcome_eligible,
)
from src.mc_marketplace.domain.repository import MarketplaceRepositoryProtocol
from src.mc_marketplace.infrastructure.persistence import MarketplaceRepository
from src.mc_quotas.infrastructure.persistence import QuotaRepository

logger = logging.getLogger(__name__)

REFERENCE_TYPE = "MARKET_ORDER"

SCORE_QUOTA_BUYER = 50
SCORE_QUOTA_SELLER = 20
SCORE_COURIER_DELIVERY = 10
RATING_SCORE_MULTIPLIER = 10


class EscrowService:
    def __init__(
        self,
        repo: MarketplaceRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        credit: CreditAnalysisService | None = None,
        loans: LoanService | None = None,
        quotas: QuotaRepository | None = None,
    ) -> None:
        self._repo: MarketplaceRepositoryProtocol = repo or MarketplaceRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._credit = credit or CreditAnalysisService()
        self._loans = loans or LoanService(ledger=self._ledger)
        self._quotas = quotas or QuotaRepository()

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def create_listing(
        self, db: AsyncSession, seller_id: str, req: CreateListingRequest
    ) -> ListingResponse:
        try:
            if req.quota_id is not None:
                quota = await self._quotas.lock_owned_quota(db, req.quota_id, seller_id)
                if quota is None:
                    raise InvalidLotError(f"quota {req.quota_id} is not an active quota of the seller")
                if await self._repo.quota_in_escrow(db, req.quota_id):
                    raise QuotaAlreadyListedError(req.quota_id)
            listing = await self._repo.create_listing(
                db,
                Listing(
                    id="",
                    seller_id=seller_id,
                    title=req.title,
                    description=req.description,
                    price=req.price_cents,
                    category=req.category,
                    item_type=req.item_type.value,
                    required_vehicle=req.required_vehicle.value,
                    quota_id=req.quota_id,
                    pickup_lat=req.pickup_lat,
                    pickup_lng=req.pickup_lng,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Listing %s created by %s at %d cents", listing.id, seller_id, listing.price)
        return ListingResponse.from_domain(listing)

    async def get_listing(self, db: AsyncSession, listing_id: str) -> ListingResponse:
        listing = await self._repo.get_listing(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return ListingResponse.from_domain(listing)

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    async def _load_lot(
        self, db: AsyncSession, buyer_id: str, listing_ids: list[str]
    ) -> list[Listing]:
        listings = await self._repo.get_listings(db, listing_ids)
        if len(listings) != len(listing_ids) or any(
            listing.status != ListingStatus.ACTIVE for listing in listings
        ):
            raise ItemUnavailableError()
        if len({listing.seller_id for listing in listings}) > 1:
            raise SellerMismatchError()
        if listings[0].seller_id == buyer_id:
            raise SelfPurchaseError()
        return listings

    async def _load_member(self, db: AsyncSession, member_id: str) -> Member:
        member = await self._ledger.get_member(db, member_id)
        if member is None:
            raise MemberNotFoundError(member_id)
        return member

    async def _claim_listings(self, db: AsyncSession, listing_ids: list[str]) -> None:
        claimed = await self._repo.mark_listings_sold(db, listing_ids)
        if claimed != len(listing_ids):
            raise ItemUnavailableError()

    async def _apply_welcome(self, db: AsyncSession, buyer: Member) -> bool:
        if not welcome_eligible(buyer):
            return False
        return await self._ledger.consume_welcome_benefit(
            db, buyer.id, settings.WELCOME_BENEFIT_MAX_USES
        )

    @staticmethod
    def _with_pickup_point(options: DeliveryOptions, listings: list[Listing]) -> DeliveryOptions:
        if options.pickup_lat is not None and options.pickup_lng is not None:
            return options
        origin = listings[0]
        return dataclasses.replace(options, pickup_lat=origin.pickup_lat, pickup_lng=origin.pickup_lng)

    @staticmethod
    def _new_order(
        buyer_id: str,
        seller: Member,
        listings: list[Listing],
        lot: PricedLot,
        options: DeliveryOptions,
        payment_method: str,
        welcome_applied: bool,
        instant_delivery: bool,
        offline_token: str | None = None,
    ) -> MarketplaceOrder:
        fee, seller_amount = escrow_fee(
            lot.amount, escrow_rate_bps(seller.is_verified_seller, welcome_applied)
        )
        if instant_delivery:
            status, delivery_status = OrderStatus.COMPLETED, DeliveryStatus.DELIVERED
        elif options.delivery_type == DeliveryType.COURIER_REQUEST:
            status, delivery_status = OrderStatus.WAITING_SHIPPING, DeliveryStatus.AVAILABLE
        else:
            status, delivery_status = OrderStatus.WAITING_SHIPPING, DeliveryStatus.NONE
        origin = OrderOrigin.offline_sync(offline_token) if offline_token else OrderOrigin.marketplace()
        return MarketplaceOrder(
            id="",
            buyer_id=buyer_id,
            seller_id=seller.id,
            amount=lot.amount,
            fee_amount=fee,
            seller_amount=seller_amount,
            delivery_fee=lot.delivery_fee,
            total_charged=lot.total_charged,
            payment_method=payment_method,
            status=status.value,
            delivery_status=delivery_status.value,
            delivery_type=options.delivery_type,
            delivery_address=options.delivery_address,
            contact_phone=options.contact_phone,
            pickup_lat=options.pickup_lat,
            pickup_lng=options.pickup_lng,
            delivery_lat=options.delivery_lat,
            delivery_lng=options.delivery_lng,
            pickup_code=generate_pickup_code(),
            delivery_confirmation_code=generate_delivery_code(),
            offline_token=offline_token,
            origin=origin,
            seller_released=instant_delivery,
            welcome_benefit_applied=welcome_applied,
            items=[
                OrderItem(
                    listing_id=listing.id,
                    title=listing.title,
                    price=listing.price,
                    quota_id=listing.quota_id,
                )
                for listing in listings
            ],
        )

    @staticmethod
    def _purchase_summary(order: MarketplaceOrder) -> PurchaseResponse:
        return PurchaseResponse(
            order_id=order.id,
            status=order.status,
            amount_cents=order.amount,
            fee_cents=order.fee_amount,
            delivery_fee_cents=order.delivery_fee,
            total_charged_cents=order.total_charged,
            total_charged_display=cents_to_display(order.total_charged),
            welcome_benefit_applied=order.welcome_benefit_applied,
            delivery_confirmation_code=order.delivery_confirmation_code,
            offline_token=order.offline_token,
        )

    async def purchase_listing(
        self, db: AsyncSession, buyer_id: str, req: PurchaseRequest
    ) -> PurchaseResponse:
        """Buy a lot from balance (or an offline QR payment settled from balance)."""
        offline_token: str | None = None
        if req.payment_method == PaymentMethod.OFFLINE_QR:
            offline_token = req.offline_token or generate_offline_token()
            if req.offline_token:
                replay = await self._repo.get_order_by_offline_token(db, req.offline_token)
                if replay is not None:
                    if replay.buyer_id != buyer_id:
                        raise ItemUnavailableError("Offline token already used")
                    logger.info("Offline order replay: token already synced as %s", replay.id)
                    return self._purchase_summary(replay)

        listings = await self._load_lot(db, buyer_id, req.listing_ids)
        options = self._with_pickup_point(req.delivery_options(), listings)
        lot = price_lot(listings, options)
        seller = await self._load_member(db, listings[0].seller_id)
        buyer = await self._load_member(db, buyer_id)

        try:
            if lot.is_digital:
                await self._lock_members(db, [buyer_id, seller.id])
            check = await self._ledger.with_locked_balance(db, buyer_id, lot.total_charged)
            if not check.sufficient:
                raise InsufficientBalanceError(lot.total_charged, check.current_balance)
            await self._claim_listings(db, req.listing_ids)
            await self._ledger.adjust_balance(
                db, buyer_id, lot.total_charged, BalanceDirection.DEBIT
            )
            welcome = await self._apply_welcome(db, buyer)
            order = self._new_order(
                buyer_id,
                seller,
                listings,
                lot,
                options,
                req.payment_method,
                welcome,
                instant_delivery=lot.is_digital,
                offline_token=offline_token,
            )
            order.id = await self._repo.insert_order(db, order)
            await self._repo.insert_order_items(db, order.id, order.items)
            await self._ledger.record_entry(
                db,
                buyer_id,
                LedgerEntryType.MARKET_PURCHASE,
                -lot.total_charged,
                f"Marketplace purchase: {', '.join(listing.title for listing in listings)}",
                reference_type=REFERENCE_TYPE,
                reference_id=order.id,
                metadata={
                    "listing_ids": req.listing_ids,
                    "fee_amount": order.fee_amount,
                    "delivery_fee": order.delivery_fee,
                    "payment_method": req.payment_method,
                    "welcome_benefit": welcome,
                },
            )
            if lot.is_digital:
                await self.settle_order(db, order, release_seller=True)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order %s: buyer %s paid %d cents to escrow (fee %d, delivery %d)",
            order.id, buyer_id, order.total_charged, order.fee_amount, order.delivery_fee,
        )
        notify(order.seller_id, "New sale", f"Order {order.id} was paid")
        return self._purchase_summary(order)

    async def purchase_on_credit(
        self, db: AsyncSession, buyer_id: str, req: CreditPurchaseRequest
    ) -> PurchaseResponse:
        """Buy a lot financed by an installment loan drawn on system cash."""
        if not 1 <= req.installments <= settings.MARKET_CREDIT_MAX_INSTALLMENTS:
            raise InvalidInstallmentCountError(req.installments, settings.MARKET_CREDIT_MAX_INSTALLMENTS)

        profile = await self._credit.load_profile(db, buyer_id)
        if profile is None:
            raise MemberNotFoundError(buyer_id)
        if profile.score < settings.MARKET_CREDIT_MIN_SCORE:
            raise ScoreTooLowError(profile.score, settings.MARKET_CREDIT_MIN_SCORE)
        if profile.active_quota_count < settings.MARKET_CREDIT_MIN_QUOTAS:
            raise InsufficientQuotasError(settings.MARKET_CREDIT_MIN_QUOTAS)
        buyer = await self._load_member(db, buyer_id)
        if buyer.missing_verifications:
            raise UnverifiedProfileError(buyer.missing_verifications)

        listings = await self._load_lot(db, buyer_id, req.listing_ids)
        options = self._with_pickup_point(req.delivery_options(), listings)
        lot = price_lot(listings, options)
        seller = await self._load_member(db, listings[0].seller_id)

        try:
            buyer = await self._ledger.lock_member(db, buyer_id)
            await self._claim_listings(db, req.listing_ids)
            reserve = await self._ledger.lock_system_reserve(db)

            result, outstanding = await self._credit.available_credit(db, buyer_id)
            available = max(0, result.limit - outstanding)
            if lot.total_charged > available:
                raise LimitExceededError(lot.total_charged, available)
            exposure = await self._repo.committed_credit_exposure(db)
            if lot.total_charged > reserve.system_balance - exposure:
                logger.warning(
                    "Credit purchase refused: system_balance=%d exposure=%d requested=%d",
                    reserve.system_balance, exposure, lot.total_charged,
                )
                raise SystemCashExhaustedError()

            welcome = await self._apply_welcome(db, buyer)
            order = self._new_order(
                buyer_id,
                seller,
                listings,
                lot,
                options,
                PaymentMethod.CRED30_CREDIT.value,
                welcome,
                instant_delivery=False,
            )
            order.id = await self._repo.insert_order(db, order)
            await self._repo.insert_order_items(db, order.id, order.items)
            loan_id, schedule = await self._loans.create_marketplace_loan(
                db,
                buyer_id,
                order.id,
                lot.amount,
                lot.delivery_fee,
                req.installments,
                settings.MARKET_CREDIT_MONTHLY_RATE_BPS,
            )
            await self._ledger.record_entry(
                db,
                buyer_id,
                LedgerEntryType.MARKET_CREDIT_PURCHASE,
                0,
                f"Marketplace purchase on credit in {req.installments}x",
                reference_type=REFERENCE_TYPE,
                reference_id=order.id,
                metadata={
                    "listing_ids": req.listing_ids,
                    "loan_id": loan_id,
                    "financed": lot.total_charged,
                    "total_repayment": schedule.total_repayment,
                    "welcome_benefit": welcome,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order %s: buyer %s financed %d cents via loan %s (%dx)",
            order.id, buyer_id, order.total_charged, loan_id, req.installments,
        )
        notify(order.seller_id, "New sale", f"Order {order.id} was paid on credit")
        summary = self._purchase_summary(order)
        summary.loan_id = loan_id
        summary.installments = req.installments
        summary.installment_amount_cents = schedule.lines[0].amount
        summary.total_repayment_cents = schedule.total_repayment
        return summary

    # ------------------------------------------------------------------
    # Settlement (shared with admin dispute resolution)
    # ------------------------------------------------------------------

    async def _lock_members(self, db: AsyncSession, member_ids: list[str]) -> None:
        for member_id in sorted(set(member_ids)):
            await self._ledger.lock_member(db, member_id)

    async def settle_order(
        self, db: AsyncSession, order: MarketplaceOrder, release_seller: bool
    ) -> None:
        """Pay everyone out of escrow. Caller owns the unit of work.

        Legs already paid out early (seller_released / courier_released) are
        skipped; the escrow fee and the logistics cut are still distributed.
        """
        await self._lock_members(db, order.member_ids_to_lock())

        transferred = 0
        for item in order.items:
            if item.quota_id is None:
                continue
            if not await self._quotas.transfer_quota(db, item.quota_id, order.seller_id, order.buyer_id):
                raise QuotaTransferError(item.quota_id, order.seller_id)
            await self._ledger.record_entry(
                db,
                order.buyer_id,
                LedgerEntryType.QUOTA_TRANSFER,
                0,
                "Quota received from marketplace purchase",
                reference_type=REFERENCE_TYPE,
                reference_id=order.id,
                metadata={"quota_id": item.quota_id, "from": order.seller_id},
            )
            transferred += 1
        if transferred:
            await self._ledger.adjust_score(db, order.buyer_id, SCORE_QUOTA_BUYER, "quota acquired")
            await self._ledger.adjust_score(db, order.seller_id, SCORE_QUOTA_SELLER, "quota sold")

        if release_seller and order.seller_amount > 0:
            await self._ledger.adjust_balance(
                db, order.seller_id, order.seller_amount, BalanceDirection.CREDIT
            )
            await self._ledger.record_entry(
                db,
                order.seller_id,
                LedgerEntryType.MARKET_SALE,
                order.seller_amount,
                "Marketplace sale released from escrow",
                reference_type=REFERENCE_TYPE,
                reference_id=order.id,
                metadata={"amount": order.amount, "fee_amount": order.fee_amount},
            )
        await distribute_fee(order.fee_amount, MARKETPLACE_ESCROW, self._ledger, db)

        if order.delivery_fee > 0:
            if order.courier_id:
                await self._pay_courier(db, order, order.courier_id)
            else:
                await self._ledger.adjust_balance(
                    db, order.seller_id, order.delivery_fee, BalanceDirection.CREDIT
                )
                await self._ledger.record_entry(
                    db,
                    order.seller_id,
                    LedgerEntryType.MARKET_SALE,
                    order.delivery_fee,
                    "Shipping fee released from escrow",
                    reference_type=REFERENCE_TYPE,
                    reference_id=order.id,
                )

        if order.is_credit:
            await self._ledger.lock_system_reserve(db)
            await self._ledger.increment_system_reserves(
                db, ReserveDeltas(system_balance=-order.total_charged)
            )

    async def _pay_courier(
        self, db: AsyncSession, order: MarketplaceOrder, courier_id: str
    ) -> None:
        payout, cut = courier_payout(order.delivery_fee)
        if payout > 0 and not order.courier_released:
            await self._ledger.adjust_balance(db, courier_id, payout, BalanceDirection.CREDIT)
            await self._ledger.record_entry(
                db,
                courier_id,
                LedgerEntryType.LOGISTIC_EARNING,
                payout,
                "Delivery completed",
                reference_type=REFERENCE_TYPE,
                reference_id=order.id,
                metadata={"delivery_fee": order.delivery_fee, "platform_cut": cut},
            )
        await distribute_fee(cut, LOGISTICS_SUSTAINABILITY, self._ledger, db)
        await self._ledger.adjust_score(db, courier_id, SCORE_COURIER_DELIVERY, "delivery completed")

    async def _claw_back(
        self, db: AsyncSession, order: MarketplaceOrder, member_id: str, amount: int, leg: PayoutLeg
    ) -> None:
        # The anticipation fee already left escrow, so the payee refunds the gross leg
        await self._ledger.adjust_balance(db, member_id, amount, BalanceDirection.DEBIT)
        await self._ledger.record_entry(
            db,
            member_id,
            LedgerEntryType.MARKET_CLAWBACK,
            -amount,
            "Early payout returned to escrow",
            reference_type=REFERENCE_TYPE,
            reference_id=order.id,
            metadata={"leg": leg.value},
        )

    async def unwind_order(self, db: AsyncSession, order: MarketplaceOrder) -> None:
        """Cancel the order and give the buyer back what they paid or financed.

        Legs paid out early are taken back from their payee first; a payee
        who cannot cover it aborts the whole unwind.
        """
        await self._lock_members(db, order.member_ids_to_lock())
        await self._repo.update_order_status(db, order.id, OrderStatus.CANCELLED.value)
        await self._repo.reactivate_listings(db, order.id)
        if order.seller_released and order.seller_amount > 0:
            await self._claw_back(db, order, order.seller_id, order.seller_amount, PayoutLeg.SELLER)
        if order.courier_released and order.courier_id:
            payout, _ = courier_payout(order.delivery_fee)
            if payout > 0:
                await self._claw_back(db, order, order.courier_id, payout, PayoutLeg.COURIER)
        if order.is_credit:
            loan_id = await self._loans.cancel_order_loan(db, order.id, order.buyer_id)
            await self._ledger.record_entry(
                db,
                order.buyer_id,
                LedgerEntryType.MARKET_REFUND_CREDIT,
                0,
                "Credit purchase cancelled, loan voided",
                reference_type=REFERENCE_TYPE,
                reference_id=order.id,
                metadata={"loan_id": loan_id, "financed": order.total_charged},
            )
            return
        await self._ledger.adjust_balance(
            db, order.buyer_id, order.total_charged, BalanceDirection.CREDIT
        )
        await self._ledger.record_entry(
            db,
            order.buyer_id,
            LedgerEntryType.MARKET_REFUND,
            order.total_charged,
            "Marketplace purchase refunded",
            reference_type=REFERENCE_TYPE,
            reference_id=order.id,
        )

    # ------------------------------------------------------------------
    # Order lifecycle
    # ------------------------------------------------------------------

    async def confirm_receipt(
        self,
        db: AsyncSession,
        order_id: str,
        actor_id: str,
        verification_code: str | None = None,
    ) -> OrderActionResponse:
        """Complete the order and release escrow.

        The buyer confirms directly. Anyone else (the courier at the door, the
        seller at a pickup counter) must present the buyer's delivery
        confirmation code or the offline token; the pickup code never works.
        """
        try:
            order = await self._repo.lock_order(db, order_id)
            if not can_confirm(order.status):
                raise OrderNotConfirmableError(order_id, order.status)
            if actor_id != order.buyer_id:
                if not verification_code:
                    raise NotOrderPartyError()
                if not _code_matches(
                    verification_code, order.delivery_confirmation_code, order.offline_token
                ):
                    raise InvalidVerificationCodeError()
            await self._repo.complete_order(db, order.id)
            await self.settle_order(db, order, release_seller=not order.seller_released)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s completed by %s", order_id, actor_id)
        notify(order.seller_id, "Order completed", f"Funds for order {order_id} were released")
        return OrderActionResponse(order_id=order_id, status=OrderStatus.COMPLETED.value)

    async def cancel_order(
        self, db: AsyncSession, order_id: str, actor_id: str
    ) -> OrderActionResponse:
        try:
            order = await self._repo.lock_order(db, order_id)
            if not order.is_party(actor_id):
                raise NotOrderPartyError()
            if not can_cancel(order.status):
                raise OrderNotCancellableError(order_id, order.status)
            if order.seller_released or order.courier_released:
                raise OrderNotCancellableError(order_id, f"{order.status} with a payout already released")
            await self.unwind_order(db, order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s cancelled by %s", order_id, actor_id)
        notify(order.counterparty(actor_id), "Order cancelled", f"Order {order_id} was cancelled")
        return OrderActionResponse(order_id=order_id, status=OrderStatus.CANCELLED.value)

    async def open_dispute(
        self, db: AsyncSession, order_id: str, actor_id: str, reason: str
    ) -> OrderActionResponse:
        order = await self._get_party_order(db, order_id, actor_id)
        try:
            if not await self._repo.mark_disputed(db, order_id, reason):
                current = await self._repo.get_order(db, order_id)
                status = current.status if current else order.status
                if status == OrderStatus.DISPUTE:
                    raise AlreadyDisputedError(order_id)
                raise OrderNotDisputableError(order_id, status)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s disputed by %s: %s", order_id, actor_id, reason)
        notify(order.counterparty(actor_id), "Dispute opened", f"Order {order_id} is under review")
        return OrderActionResponse(order_id=order_id, status=OrderStatus.DISPUTE.value)

    async def rate_order(
        self,
        db: AsyncSession,
        order_id: str,
        actor_id: str,
        rating: int,
        comment: str | None = None,
    ) -> RatingResponse:
        order = await self._get_party_order(db, order_id, actor_id)
        if order.status != OrderStatus.COMPLETED:
            raise OrderNotRatableError(order.status)
        rated_id = order.counterparty(actor_id)
        delta = rating * RATING_SCORE_MULTIPLIER
        try:
            if not await self._repo.insert_rating(db, order_id, actor_id, rated_id, rating, comment):
                raise AlreadyRatedError()
            if delta:
                await self._ledger.adjust_score(db, rated_id, delta, f"rating {rating:+d} on order {order_id}")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return RatingResponse(
            order_id=order_id, rated_member_id=rated_id, rating=rating, score_delta=delta
        )

    async def mark_shipped(
        self, db: AsyncSession, order_id: str, seller_id: str
    ) -> OrderActionResponse:
        order = await self._get_order(db, order_id)
        if order.seller_id != seller_id:
            raise NotOrderPartyError()
        try:
            if not await self._repo.mark_shipped(db, order_id, seller_id):
                raise OrderNotShippableError(order_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        notify(order.buyer_id, "Order shipped", f"Order {order_id} is on its way")
        return OrderActionResponse(order_id=order_id, status=OrderStatus.IN_TRANSIT.value)

    async def anticipate(
        self, db: AsyncSession, order_id: str, actor_id: str
    ) -> AnticipationResponse:
        """Pay the seller's or the courier's leg before the buyer confirms.

        The payee receives the leg minus the anticipation fee, and the fee goes
        to the reserve pools. The leg is flagged as released so settlement
        skips it. Credit orders settle from system cash and cannot anticipate.
        """
        try:
            order = await self._repo.lock_order(db, order_id)
            if actor_id == order.seller_id:
                leg, gross = PayoutLeg.SELLER, order.seller_amount
                window, released = SELLER_ANTICIPATION_STATUSES, order.seller_released
            elif order.courier_id is not None and actor_id == order.courier_id:
                leg, gross = PayoutLeg.COURIER, courier_payout(order.delivery_fee)[0]
                window, released = COURIER_ANTICIPATION_STATUSES, order.courier_released
            else:
                raise NotOrderPartyError()
            if order.is_credit:
                raise OrderNotAnticipatableError(order_id, "credit purchases settle from system cash")
            if released:
                raise AlreadyAnticipatedError(order_id)
            if order.status not in window:
                raise OrderNotAnticipatableError(order_id, f"{leg.value} leg is closed in status {order.status}")
            fee, net = anticipation_fee(gross)
            if net <= 0:
                raise OrderNotAnticipatableError(order_id, "nothing to pay out")

            if not await self._repo.mark_leg_released(db, order.id, leg):
                raise AlreadyAnticipatedError(order_id)
            await self._ledger.lock_member(db, actor_id)
            await self._ledger.adjust_balance(db, actor_id, net, BalanceDirection.CREDIT)
            await self._ledger.record_entry(
                db,
                actor_id,
                LedgerEntryType.MARKET_ANTICIPATION,
                net,
                f"Early payout of the {leg.value.lower()} leg",
                reference_type=REFERENCE_TYPE,
                reference_id=order.id,
                metadata={"leg": leg.value, "gross": gross, "anticipation_fee": fee},
            )
            await distribute_fee(fee, ANTICIPATION, self._ledger, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order %s: %s leg anticipated by %s (gross %d, fee %d)",
            order_id, leg.value, actor_id, gross, fee,
        )
        return AnticipationResponse(
            order_id=order_id,
            leg=leg.value,
            gross_cents=gross,
            fee_cents=fee,
            net_cents=net,
            net_display=cents_to_display(net),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _get_order(self, db: AsyncSession, order_id: str) -> MarketplaceOrder:
        order = await self._repo.get_order(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _get_party_order(
        self, db: AsyncSession, order_id: str, member_id: str
    ) -> MarketplaceOrder:
        order = await self._get_order(db, order_id)
        if not order.is_party(member_id):
            raise NotOrderPartyError()
        return order

    async def get_order(self, db: AsyncSession, order_id: str, member_id: str) -> OrderResponse:
        order = await self._get_order(db, order_id)
        if not order.is_party(member_id) and order.courier_id != member_id:
            raise NotOrderPartyError()
        return OrderResponse.from_domain(order, member_id)

    async def list_orders(
        self, db: AsyncSession, member_id: str, role: str, limit: int
    ) -> OrderListResponse:
        orders = await self._repo.list_orders(db, member_id, role, limit)
        return OrderListResponse(items=[OrderResponse.from_domain(o, member_id) for o in orders])


def _code_matches(code: str, *candidates: str | None) -> bool:
    return any(c is not None and secrets.compare_digest(code, c) for c in candidates)
