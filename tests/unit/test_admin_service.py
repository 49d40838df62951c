"""Unit tests for AdminService dispute resolution and verification."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.mc_admin.application.service import DISPUTE_PENALTY_SCORE, AdminService
from src.mc_common.enums import DisputeResolution, OrderStatus
from src.mc_common.errors import MemberNotFoundError, NotOrderPartyError, OrderNotInDisputeError

from factories import make_order


def _service() -> tuple[AdminService, AsyncMock, AsyncMock, AsyncMock]:
    repo = AsyncMock()
    ledger = AsyncMock()
    escrow = AsyncMock()
    svc = AdminService(escrow=escrow, repo=repo, ledger=ledger, loans=AsyncMock())
    return svc, repo, ledger, escrow


class TestResolveDispute:
    async def test_refund_buyer_unwinds(self) -> None:
        svc, repo, _, escrow = _service()
        order = make_order(status=OrderStatus.DISPUTE.value)
        repo.lock_order.return_value = order
        db = AsyncMock()

        result = await svc.resolve_dispute("order-1", DisputeResolution.REFUND_BUYER, "admin-1", db)

        escrow.unwind_order.assert_awaited_once_with(db, order)
        escrow.settle_order.assert_not_awaited()
        assert result["status"] == "CANCELLED"
        db.commit.assert_awaited_once()

    async def test_release_to_seller_settles(self) -> None:
        svc, repo, _, escrow = _service()
        order = make_order(status=OrderStatus.DISPUTE.value)
        repo.lock_order.return_value = order
        db = AsyncMock()

        result = await svc.resolve_dispute("order-1", DisputeResolution.RELEASE_TO_SELLER, "admin-1", db)

        repo.complete_order.assert_awaited_once_with(db, "order-1")
        escrow.settle_order.assert_awaited_once_with(db, order, release_seller=True)
        assert result["status"] == "COMPLETED"

    async def test_release_after_anticipation_skips_seller_payout(self) -> None:
        svc, repo, _, escrow = _service()
        order = make_order(status=OrderStatus.DISPUTE.value, seller_released=True)
        repo.lock_order.return_value = order
        db = AsyncMock()

        await svc.resolve_dispute("order-1", DisputeResolution.RELEASE_TO_SELLER, "admin-1", db)

        escrow.settle_order.assert_awaited_once_with(db, order, release_seller=False)

    async def test_penalty_applied_to_party(self) -> None:
        svc, repo, ledger, _ = _service()
        repo.lock_order.return_value = make_order(status=OrderStatus.DISPUTE.value)
        db = AsyncMock()

        result = await svc.resolve_dispute(
            "order-1", DisputeResolution.REFUND_BUYER, "admin-1", db, penalty_member_id="seller-1"
        )

        args = ledger.adjust_score.await_args.args
        assert args[1:3] == ("seller-1", DISPUTE_PENALTY_SCORE)
        assert result["penalized_member_id"] == "seller-1"

    async def test_penalty_for_outsider_rejected(self) -> None:
        svc, repo, ledger, escrow = _service()
        repo.lock_order.return_value = make_order(status=OrderStatus.DISPUTE.value)
        db = AsyncMock()

        with pytest.raises(NotOrderPartyError):
            await svc.resolve_dispute(
                "order-1", DisputeResolution.REFUND_BUYER, "admin-1", db, penalty_member_id="stranger"
            )

        escrow.unwind_order.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_order_not_in_dispute(self) -> None:
        svc, repo, _, escrow = _service()
        repo.lock_order.return_value = make_order(status=OrderStatus.WAITING_SHIPPING.value)
        db = AsyncMock()
        with pytest.raises(OrderNotInDisputeError):
            await svc.resolve_dispute("order-1", DisputeResolution.REFUND_BUYER, "admin-1", db)
        escrow.unwind_order.assert_not_awaited()
        db.commit.assert_not_awaited()


class TestVerifyMember:
    async def test_updates_flags(self) -> None:
        svc, *_ = _service()
        db = AsyncMock()
        result_mock = MagicMock()
        result_mock.fetchone.return_value = MagicMock(
            identity_verified=True, phone_verified=False, is_verified_seller=True
        )
        db.execute.return_value = result_mock

        result = await svc.verify_member(db, "m-1", True, None, True)

        params = db.execute.await_args.args[1]
        assert params["phone_verified"] is None
        assert result["is_verified_seller"] is True
        db.commit.assert_awaited_once()

    async def test_unknown_member(self) -> None:
        svc, *_ = _service()
        db = AsyncMock()
        result_mock = MagicMock()
        result_mock.fetchone.return_value = None
        db.execute.return_value = result_mock
        with pytest.raises(MemberNotFoundError):
            await svc.verify_member(db, "ghost", True, None, None)
        db.rollback.assert_awaited_once()


class TestSweeps:
    async def test_mark_late_delegates(self) -> None:
        loans = AsyncMock()
        loans.mark_late_installments.return_value = 4
        svc = AdminService(escrow=AsyncMock(), repo=AsyncMock(), ledger=AsyncMock(), loans=loans)
        assert await svc.mark_late_installments(AsyncMock()) == {"marked_late": 4}
