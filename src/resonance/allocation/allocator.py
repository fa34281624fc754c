"""Resonance-proportional payout allocation with fixed-point normalization.

The settlement layer only handles 8-decimal fixed-point values, so every
percentage and amount is quantized to ``FIXED_POINT`` with ``ROUND_HALF_UP``.
Rounding dust is never spread across creators: the whole residual goes to the
single largest share, which makes the percentages sum to exactly 1 and the
amounts sum to exactly the budget.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import structlog

from resonance.domain.errors import (
    AllocationInvariantError,
    InputValidationError,
    NoEligibleCreatorsError,
)
from resonance.domain.models import FIXED_POINT, MAX_BUDGET, PayoutSplit, Submission

logger = structlog.get_logger()

# Allowed deviation of the percent sum from 1.0
SPLIT_TOLERANCE = Decimal("0.00000001")

ONE = Decimal("1")


def creator_totals(submissions: Iterable[Submission]) -> dict[str, Decimal]:
    """Sum resonance scores per creator, in first-seen order.

    Args:
        submissions: Eligible submissions.

    Returns:
        Mapping of creator address to total score as Decimal.
    """
    totals: dict[str, Decimal] = {}
    for submission in submissions:
        score = Decimal(str(submission.resonance_score))
        totals[submission.creator_address] = (
            totals.get(submission.creator_address, Decimal("0")) + score
        )
    return totals


def _largest_index(values: list[Decimal]) -> int:
    # max() returns the first maximal element, so ties go to the earliest creator
    return max(range(len(values)), key=lambda i: values[i])


def split_totals(totals: dict[str, Decimal], budget: Decimal) -> list[PayoutSplit]:
    """Convert per-creator totals into normalized splits of *budget*.

    Args:
        totals: Creator address to total score, in stable grouping order.
        budget: Campaign budget to distribute.

    Returns:
        One ``PayoutSplit`` per creator, in the order of *totals*.

    Raises:
        InputValidationError: If the budget is not positive or exceeds
            ``MAX_BUDGET``.
        NoEligibleCreatorsError: If there are no creators or the grand
            total is not positive.
        AllocationInvariantError: If fixed-point arithmetic fails or the
            post-condition check fails.
    """
    if budget <= 0 or budget > MAX_BUDGET:
        raise InputValidationError(f"budget must be in (0, {MAX_BUDGET}], got {budget}")

    grand_total = sum(totals.values(), Decimal("0"))
    if not totals or grand_total <= 0:
        raise NoEligibleCreatorsError("No eligible creators with a positive resonance total")

    addresses = list(totals)
    try:
        percents = [
            (totals[addr] / grand_total).quantize(FIXED_POINT, rounding=ROUND_HALF_UP)
            for addr in addresses
        ]
        largest = _largest_index(percents)
        percents[largest] += ONE - sum(percents, Decimal("0"))

        budget = budget.quantize(FIXED_POINT, rounding=ROUND_HALF_UP)
        amounts = [
            (percent * budget).quantize(FIXED_POINT, rounding=ROUND_HALF_UP)
            for percent in percents
        ]
        amounts[largest] += budget - sum(amounts, Decimal("0"))
    except InvalidOperation as exc:
        logger.error("allocation_arithmetic_failed", budget=str(budget), totals=len(totals))
        raise AllocationInvariantError(
            f"Fixed-point allocation failed for budget {budget}"
        ) from exc

    splits = [
        PayoutSplit(creator_address=addr, percent=percent, amount=amount)
        for addr, percent, amount in zip(addresses, percents, amounts, strict=True)
    ]
    _check_postconditions(splits, budget)
    return splits


def allocate(eligible: Iterable[Submission], budget: Decimal) -> list[PayoutSplit]:
    """Compute each creator's share of the budget from their resonance totals.

    Steps: group by creator and sum scores, divide by the grand total, round
    to 8 places, add the rounding residual to the largest share, then
    multiply by the budget at the same precision.

    Args:
        eligible: Eligible submissions (see ``CampaignStore.get_eligible_submissions``).
        budget: Campaign budget.

    Returns:
        The payout splits.

    Raises:
        NoEligibleCreatorsError: If no creator has a positive total.
        AllocationInvariantError: If the computed split is inconsistent.
    """
    return split_totals(creator_totals(eligible), budget)


def _check_postconditions(splits: list[PayoutSplit], budget: Decimal) -> None:
    percent_sum = sum((s.percent for s in splits), Decimal("0"))
    amount_sum = sum((s.amount for s in splits), Decimal("0"))

    problems: list[str] = []
    if abs(percent_sum - ONE) > SPLIT_TOLERANCE:
        problems.append(f"percent sum {percent_sum} != 1")
    if abs(amount_sum - budget) > FIXED_POINT:
        problems.append(f"amount sum {amount_sum} != budget {budget}")
    if any(s.percent < 0 or s.percent > ONE for s in splits):
        problems.append("percent outside [0, 1]")

    if problems:
        logger.error(
            "allocation_invariant_violated",
            problems=problems,
            splits=[(s.creator_address, str(s.percent), str(s.amount)) for s in splits],
        )
        raise AllocationInvariantError("; ".join(problems))
