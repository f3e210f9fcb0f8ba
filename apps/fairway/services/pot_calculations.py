"""
Pot size and prize distribution calculations.

All amounts are integers in the smallest currency unit. Arithmetic goes
through Decimal so that percentage sums and floors do not drift with
binary floating point (0.6 + 0.15 + 0.125 + 0.075 + 0.05 must be exactly 1).
"""

from decimal import Decimal, ROUND_FLOOR
from typing import Iterable, List, Optional, Sequence, Tuple, Dict

from fairway.models.schemas import RewardSplit
from fairway.utils.constants import DEFAULT_REWARD_SPLITS, PLATFORM_FEE_PERCENTAGE


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def calculate_gross_pot(entry_fee: int, team_count: int) -> int:
    """Total entry fees collected before the platform fee."""
    return entry_fee * team_count


def calculate_total_pot(
    entry_fee: int,
    team_count: int,
    fee_percentage: float = PLATFORM_FEE_PERCENTAGE,
) -> int:
    """
    Calculate the pot available for prizes after the platform fee.

    Args:
        entry_fee: Entry fee per team
        team_count: Number of teams in the league
        fee_percentage: Fraction of the gross withheld by the platform

    Returns:
        Pot, floored to the smallest currency unit

    Example:
        >>> calculate_total_pot(1000, 3)
        2700
    """
    gross = Decimal(calculate_gross_pot(entry_fee, team_count))
    return _floor(gross * (Decimal(1) - _to_decimal(fee_percentage)))


def calculate_platform_fee(
    entry_fee: int,
    team_count: int,
    fee_percentage: float = PLATFORM_FEE_PERCENTAGE,
) -> int:
    """Platform fee withheld from the gross entry fees (gross minus pot)."""
    return calculate_gross_pot(entry_fee, team_count) - calculate_total_pot(
        entry_fee, team_count, fee_percentage
    )


def calculate_reward_amount(total_pot: int, percentage: float) -> int:
    """Reward for one position: floor(pot * percentage)."""
    return _floor(Decimal(total_pot) * _to_decimal(percentage))


def total_percentage(rewards: Iterable[RewardSplit]) -> Decimal:
    """Exact sum of the reward percentages."""
    return sum((_to_decimal(r.percentage) for r in rewards), Decimal(0))


def validate_reward_percentages(rewards: Sequence[RewardSplit]) -> Tuple[bool, Decimal]:
    """
    Check that reward percentages are non-negative and do not exceed 100%.

    Returns:
        (is_valid, total_percentage)
    """
    total = total_percentage(rewards)
    if any(r.percentage < 0 for r in rewards):
        return False, total
    return total <= Decimal(1), total


def default_reward_structure() -> List[RewardSplit]:
    """The platform's default five-tier split."""
    return [RewardSplit(**split) for split in DEFAULT_REWARD_SPLITS]


def get_reward_structure(custom_rewards: Optional[Sequence[RewardSplit]]) -> List[RewardSplit]:
    """Use the league's rewards when present, otherwise the default split."""
    if custom_rewards:
        return list(custom_rewards)
    return default_reward_structure()


def calculate_prize_distribution(
    total_pot: int,
    rewards: Optional[Sequence[RewardSplit]] = None,
) -> List[Dict]:
    """
    Preview the amount each position would receive.

    Args:
        total_pot: Pot to distribute
        rewards: Reward schedule (defaults to the platform split)

    Returns:
        List of {"position", "percentage", "amount"} in schedule order
    """
    return [
        {
            "position": r.position,
            "percentage": r.percentage,
            "amount": calculate_reward_amount(total_pot, r.percentage),
        }
        for r in get_reward_structure(rewards)
    ]
