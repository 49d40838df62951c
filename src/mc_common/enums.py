"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class MembershipType(str, Enum):
    FREE = "FREE"
    PRO = "PRO"


class QuotaStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    PENDING = "PENDING"


class ListingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    PAUSED = "PAUSED"


class ItemType(str, Enum):
    PHYSICAL = "PHYSICAL"
    DIGITAL = "DIGITAL"


class VehicleType(str, Enum):
    """Ordered from smallest to largest; the lot needs its largest vehicle."""
    BIKE = "BIKE"
    MOTO = "MOTO"
    CAR = "CAR"
    TRUCK = "TRUCK"


class OrderStatus(str, Enum):
    WAITING_SHIPPING = "WAITING_SHIPPING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTE = "DISPUTE"


class DeliveryStatus(str, Enum):
    NONE = "NONE"
    AVAILABLE = "AVAILABLE"
    ACCEPTED = "ACCEPTED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"


class DeliveryType(str, Enum):
    SELF_PICKUP = "SELF_PICKUP"
    COURIER_REQUEST = "COURIER_REQUEST"
    EXTERNAL_SHIPPING = "EXTERNAL_SHIPPING"


class PaymentMethod(str, Enum):
    BALANCE = "BALANCE"
    CRED30_CREDIT = "CRED30_CREDIT"
    OFFLINE_QR = "OFFLINE_QR"


class OrderOriginType(str, Enum):
    MARKETPLACE = "MARKETPLACE"
    PDV_SALE = "PDV_SALE"
    OFFLINE_SYNC = "OFFLINE_SYNC"


class LoanStatus(str, Enum):
    APPROVED = "APPROVED"
    ACTIVE = "ACTIVE"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    CANCELLED = "CANCELLED"
    PAID = "PAID"


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    LATE = "LATE"


class DisputeResolution(str, Enum):
    REFUND_BUYER = "REFUND_BUYER"
    RELEASE_TO_SELLER = "RELEASE_TO_SELLER"


class PayoutLeg(str, Enum):
    """Escrow legs that can be paid out before the buyer confirms."""
    SELLER = "SELLER"
    COURIER = "COURIER"


class LedgerEntryType(str, Enum):
    # Marketplace (buyer side)
    MARKET_PURCHASE = "MARKET_PURCHASE"
    MARKET_CREDIT_PURCHASE = "MARKET_CREDIT_PURCHASE"
    MARKET_REFUND = "MARKET_REFUND"
    MARKET_REFUND_CREDIT = "MARKET_REFUND_CREDIT"
    # Marketplace (payee side)
    MARKET_SALE = "MARKET_SALE"
    MARKET_ANTICIPATION = "MARKET_ANTICIPATION"
    LOGISTIC_EARNING = "LOGISTIC_EARNING"
    MARKET_CLAWBACK = "MARKET_CLAWBACK"
    # Quotas
    QUOTA_PURCHASE = "QUOTA_PURCHASE"
    QUOTA_TRANSFER = "QUOTA_TRANSFER"
    # Loans
    LOAN_REPAYMENT = "LOAN_REPAYMENT"
    # Funding (admin-credited deposits)
    DEPOSIT = "DEPOSIT"
    # Platform fees paid from balance
    FEE_PAYMENT = "FEE_PAYMENT"
    # Reputation
    SCORE_ADJUSTMENT = "SCORE_ADJUSTMENT"


class LedgerEntryStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"


class BalanceDirection(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class ReservePool(str, Enum):
    """Named accumulators on the system_reserve row; values are column names."""
    SYSTEM_BALANCE = "system_balance"
    PROFIT_POOL = "profit_pool"
    TAX = "total_tax_reserve"
    OPERATIONAL = "total_operational_reserve"
    OWNER_PROFIT = "total_owner_profit"
    INVESTMENT = "investment_reserve"
    CORPORATE_INVESTMENT = "total_corporate_investment_reserve"
    MUTUAL = "mutual_reserve"
