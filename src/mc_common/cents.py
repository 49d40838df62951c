"""Integer arithmetic utilities for the cents-based ledger.

All prices, amounts, balances and reserve pools use int (cents). Ratios are
basis points (1 bp = 0.01%, 10000 bp = 100%). No float, no Decimal, except
where a distance in km enters the delivery-fee formula.
"""

BPS_DENOMINATOR = 10_000


def validate_amount(amount: int) -> None:
    """Validate that a monetary amount is a strictly positive integer."""
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> 'R$65.00', -1200 -> '-R$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-R${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"R${cents // 100:,}.{cents % 100:02d}"


def calculate_fee(value: int, fee_rate_bps: int) -> int:
    """Calculate fee with ceiling division (platform never loses).

    fee = ceil(value * fee_rate_bps / 10000)
    Using integer ceiling: (a + b - 1) // b
    """
    if value == 0 or fee_rate_bps == 0:
        return 0
    return (value * fee_rate_bps + BPS_DENOMINATOR - 1) // BPS_DENOMINATOR


def apply_bps(value: int, bps: int) -> int:
    """floor(value * bps / 10000), the share used by every pool split."""
    return value * bps // BPS_DENOMINATOR


def floor_to_unit(cents: int) -> int:
    """Drop the cents part: 4187 -> 4100."""
    return cents // 100 * 100
