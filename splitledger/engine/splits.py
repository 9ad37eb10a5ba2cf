"""
Split Calculators

Derive the per-participant share list for a new expense. The resulting
shares are what gets stored; the split type is only recorded alongside.

Equal and percentage splits are rounded to cents with the leftover cents
handed out one at a time from the first participant on, so the shares
always add up to exactly the expense amount.
"""

from decimal import ROUND_DOWN, Decimal
from typing import Iterable, Mapping, Optional

from splitledger.engine.members import ParticipantCandidate
from splitledger.models.expense import ExpenseParticipant


CENT = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_TOLERANCE = Decimal("0.01")


class SplitError(ValueError):
    """The requested split cannot be computed."""
    pass


def within_tolerance(total: Decimal, expected: Decimal, tolerance: Decimal) -> bool:
    """Inclusive absolute comparison used for every split total check."""
    return abs(total - expected) <= tolerance


def _distribute(amount: Decimal, raw_shares: list[tuple[str, Decimal]]) -> dict[str, Decimal]:
    """
    Round shares down to cents and hand out the remainder.

    The remainder is spread round-robin from the first participant, so the
    result sums to `amount` quantized to cents whatever its size.
    """
    rounded = [(uid, share.quantize(CENT, rounding=ROUND_DOWN)) for uid, share in raw_shares]
    remainder = amount.quantize(CENT) - sum((s for _, s in rounded), Decimal("0"))
    base, extra = divmod(int(remainder / CENT), len(rounded))

    result = {}
    for idx, (uid, share) in enumerate(rounded):
        cents = base + (1 if idx < extra else 0)
        result[uid] = share + CENT * cents
    return result


def equal_split(amount: Decimal, participant_ids: Iterable[str]) -> dict[str, Decimal]:
    """Split `amount` evenly between `participant_ids`."""
    ids = list(dict.fromkeys(participant_ids))
    if not ids:
        raise SplitError("At least one participant is required")
    if amount < 0:
        raise SplitError("Amount cannot be negative")

    per_person = amount / len(ids)
    return _distribute(amount, [(uid, per_person) for uid in ids])


def custom_split(
    amount: Decimal,
    shares: Mapping[str, Decimal],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> dict[str, Decimal]:
    """
    Accept explicit shares if they add up to `amount` within `tolerance`.

    The gap is compared inclusively: 99.995 against 100.00 passes with the
    default tolerance of 0.01.
    """
    if not shares:
        raise SplitError("At least one participant is required")
    if any(share < 0 for share in shares.values()):
        raise SplitError("Shares cannot be negative")

    total = sum(shares.values(), Decimal("0"))
    if not within_tolerance(total, amount, tolerance):
        raise SplitError(
            f"Custom split amounts ({total}) must equal the total expense amount ({amount})"
        )
    return dict(shares)


def percentage_split(
    amount: Decimal,
    percentages: Mapping[str, Decimal],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> dict[str, Decimal]:
    """
    Split `amount` by percentage; percentages must add up to 100.

    Percentages accepted within the tolerance are taken relative to their
    own total, so 49.995 / 50 still splits the whole amount.
    """
    if not percentages:
        raise SplitError("At least one participant is required")
    if any(pct < 0 for pct in percentages.values()):
        raise SplitError("Percentages cannot be negative")

    total_pct = sum(percentages.values(), Decimal("0"))
    if not within_tolerance(total_pct, HUNDRED, tolerance) or total_pct == 0:
        raise SplitError(f"Percentages must add up to 100 (got {total_pct})")

    return _distribute(
        amount,
        [(uid, amount * pct / total_pct) for uid, pct in percentages.items()],
    )


def build_participants(
    shares: Mapping[str, Decimal],
    candidates: Iterable[ParticipantCandidate],
    fallback_name: str = "Unknown",
    names: Optional[Mapping[str, str]] = None,
) -> list[ExpenseParticipant]:
    """
    Turn a share mapping into participant entries with snapshotted names.

    Names come from `names` first, then the resolver candidates.
    """
    known = {c.user_id: c.name for c in candidates}
    if names:
        known.update(names)
    return [
        ExpenseParticipant(
            user_id=uid,
            name=known.get(uid, fallback_name),
            amount=share,
        )
        for uid, share in shares.items()
    ]
