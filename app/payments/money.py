"""
Money model for the escrow flow.

All amounts are integers in the currency's minor unit (pence for GBP).
The split is computed exactly once, when the payment intent is created,
and then copied onto the intent, the booking and the payout record. No
other module recomputes it.

    base_amount   provider's price for the service
    platform_fee  round_half_up(base_amount * fee_rate)
    total_amount  base_amount + platform_fee (what the customer is charged)

Usage:
    from payments.money import compute_split

    split = compute_split(10000, Decimal("0.10"))
    split.total_amount  # 11000
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from payments.exceptions import PaymentValidationError


@dataclass(frozen=True)
class Split:
    """
    Amounts for one booking, in minor units.

    Attributes:
        base_amount: Provider's share
        platform_fee: Platform's share
        total_amount: Amount charged to the customer
    """

    base_amount: int
    platform_fee: int
    total_amount: int

    def __post_init__(self):
        if self.total_amount != self.base_amount + self.platform_fee:
            raise PaymentValidationError(
                "total_amount must equal base_amount + platform_fee",
                details={
                    "base_amount": self.base_amount,
                    "platform_fee": self.platform_fee,
                    "total_amount": self.total_amount,
                },
            )

    def as_dict(self) -> dict[str, int]:
        return {
            "base_amount": self.base_amount,
            "platform_fee": self.platform_fee,
            "total_amount": self.total_amount,
        }


def compute_split(base_amount: int, fee_rate: Decimal | str) -> Split:
    """
    Split a base price into provider share, platform fee and total.

    Args:
        base_amount: Provider's price in minor units (non-negative int)
        fee_rate: Platform fee as a fraction in [0, 1), e.g. Decimal("0.10")

    Returns:
        Split with fee rounded half up to the nearest minor unit

    Raises:
        PaymentValidationError: For negative or non-integer amounts, or a
            rate outside [0, 1)

    Example:
        >>> compute_split(10000, Decimal("0.10"))
        Split(base_amount=10000, platform_fee=1000, total_amount=11000)
        >>> compute_split(5, Decimal("0.10")).platform_fee  # 0.5 rounds up
        1
    """
    if isinstance(base_amount, bool) or not isinstance(base_amount, int):
        raise PaymentValidationError(
            "base_amount must be an integer number of minor units",
            details={"base_amount": repr(base_amount)},
        )
    if base_amount < 0:
        raise PaymentValidationError(
            "base_amount must not be negative",
            details={"base_amount": base_amount},
        )

    rate = Decimal(str(fee_rate))
    if rate < 0 or rate >= 1:
        raise PaymentValidationError(
            "fee_rate must be in [0, 1)",
            details={"fee_rate": str(rate)},
        )

    platform_fee = int(
        (Decimal(base_amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return Split(
        base_amount=base_amount,
        platform_fee=platform_fee,
        total_amount=base_amount + platform_fee,
    )


def to_major_units(amount: int) -> str:
    """
    Format minor units for display, e.g. 11000 -> "110.00".

    Display only. Never feed the result back into calculations.
    """
    return f"{(Decimal(amount) / 100).quantize(Decimal('0.01'))}"
