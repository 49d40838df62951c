"""Lot pricing: delivery fee and escrow fee rate.

Delivery fees are the only place a float (distance in km) enters a money
formula; the result is rounded up to the cent before it touches any balance.
"""

import math

from config.settings import settings
from src.mc_common.cents import BPS_DENOMINATOR, apply_bps, calculate_fee
from src.mc_common.enums import DeliveryType, ItemType, VehicleType
from src.mc_common.errors import DeliveryOutOfRangeError, InvalidLotError
from src.mc_ledger.domain.models import Member
from src.mc_marketplace.domain.models import DeliveryOptions, Listing, PricedLot

EARTH_RADIUS_KM = 6371.0

MIN_FEE_CENTS: dict[VehicleType, int] = {
    VehicleType.BIKE: 500,
    VehicleType.MOTO: 1000,
    VehicleType.CAR: 3000,
    VehicleType.TRUCK: 8000,
}

PER_KM_CENTS: dict[VehicleType, int] = {
    VehicleType.BIKE: 150,
    VehicleType.MOTO: 250,
    VehicleType.CAR: 250,
    VehicleType.TRUCK: 250,
}

MAX_KM: dict[VehicleType, int] = {
    VehicleType.BIKE: 7,
    VehicleType.MOTO: 60,
    VehicleType.CAR: 60,
    VehicleType.TRUCK: 60,
}

# Courier-side overhead applied on top of the raw distance price
DELIVERY_MARKUP_PERMILLE = 1275

_VEHICLE_ORDER = list(VehicleType)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def required_vehicle(listings: list[Listing]) -> VehicleType:
    """The lot travels in the largest vehicle any of its items needs."""
    return max(
        (VehicleType(listing.required_vehicle) for listing in listings),
        key=_VEHICLE_ORDER.index,
        default=VehicleType.BIKE,
    )


def courier_fee(distance_km: float, vehicle: VehicleType) -> int:
    if distance_km > MAX_KM[vehicle]:
        raise DeliveryOutOfRangeError(distance_km, MAX_KM[vehicle], vehicle.value)
    raw = (MIN_FEE_CENTS[vehicle] + distance_km * PER_KM_CENTS[vehicle]) * DELIVERY_MARKUP_PERMILLE / 1000
    # strip float noise before rounding up
    return math.ceil(round(raw, 6))


def delivery_fee(options: DeliveryOptions, vehicle: VehicleType) -> int:
    if options.delivery_type == DeliveryType.SELF_PICKUP:
        return 0
    if options.delivery_type == DeliveryType.EXTERNAL_SHIPPING:
        return options.offered_fee
    if options.has_coordinates:
        distance = haversine_km(
            options.pickup_lat,  # type: ignore[arg-type]
            options.pickup_lng,  # type: ignore[arg-type]
            options.delivery_lat,  # type: ignore[arg-type]
            options.delivery_lng,  # type: ignore[arg-type]
        )
        return courier_fee(distance, vehicle)
    return max(MIN_FEE_CENTS[vehicle], options.offered_fee)


def price_lot(listings: list[Listing], options: DeliveryOptions) -> PricedLot:
    """Goods total, delivery fee and what the buyer is charged.

    A single DIGITAL listing ships nothing: no delivery fee and the buyer pays
    only the goods total.
    """
    if not listings:
        raise InvalidLotError("lot is empty")
    amount = sum(listing.price for listing in listings)
    if amount <= 0:
        raise InvalidLotError("lot total must be positive")
    vehicle = required_vehicle(listings)
    is_digital = len(listings) == 1 and listings[0].item_type == ItemType.DIGITAL
    if is_digital:
        return PricedLot(amount, 0, amount, True, vehicle.value)
    fee = delivery_fee(options, vehicle)
    return PricedLot(amount, fee, amount + fee, False, vehicle.value)


def escrow_rate_bps(is_verified_seller: bool, welcome_applied: bool) -> int:
    rate = settings.ESCROW_FEE_VERIFIED_BPS if is_verified_seller else settings.ESCROW_FEE_UNVERIFIED_BPS
    if welcome_applied:
        rate = apply_bps(rate, BPS_DENOMINATOR - settings.WELCOME_FEE_DISCOUNT_BPS)
    return rate


def escrow_fee(amount: int, rate_bps: int) -> tuple[int, int]:
    """(fee_amount, seller_amount); they always sum back to ``amount``."""
    fee = calculate_fee(amount, rate_bps)
    return fee, amount - fee


def courier_payout(delivery_fee: int) -> tuple[int, int]:
    """(payout, platform_cut) of a delivery fee; the cut rounds up."""
    cut = calculate_fee(delivery_fee, settings.LOGISTICS_SUSTAINABILITY_FEE_BPS)
    return delivery_fee - cut, cut


def anticipation_fee(gross: int) -> tuple[int, int]:
    """(fee, net) of an early payout of ``gross`` cents."""
    fee = calculate_fee(gross, settings.ANTICIPATION_FEE_BPS)
    return fee, gross - fee


def welcome_eligible(member: Member) -> bool:
    """Referred members get a discounted escrow fee on their first purchases."""
    return bool(member.referred_by) and member.welcome_benefit_uses < settings.WELCOME_BENEFIT_MAX_USES
