"""Revenue split between the platform and the event organizer."""

from decimal import ROUND_HALF_UP, Decimal

from ticketing.domain.value_objects import CENT, CommissionRate, Money


def split(amount: Money, commission_rate: CommissionRate | Decimal) -> tuple[Money, Money]:
    """Return ``(platform_share, organizer_share)`` for a gross amount.

    The platform share is rounded half-up to the cent. The organizer share is
    whatever is left, so the two always add up to ``amount`` exactly.

    Raises:
        ConfigurationError: If the commission rate is outside [0, 1).
    """
    if not isinstance(commission_rate, CommissionRate):
        commission_rate = CommissionRate(commission_rate)
    platform = (amount.amount * commission_rate.value).quantize(CENT, rounding=ROUND_HALF_UP)
    platform_share = Money(platform)
    return platform_share, amount - platform_share
