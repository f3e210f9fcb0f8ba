"""
Tests for pot and prize distribution calculations.
"""
from decimal import Decimal

import pytest

from fairway.models.schemas import RewardSplit
from fairway.services import pot_calculations


def _splits(*percentages):
    return [RewardSplit(position=i + 1, percentage=p) for i, p in enumerate(percentages)]


def test_total_pot_withholds_platform_fee():
    """1000 entry fee x 3 teams at 10% fee leaves 2700."""
    assert pot_calculations.calculate_gross_pot(1000, 3) == 3000
    assert pot_calculations.calculate_total_pot(1000, 3) == 2700
    assert pot_calculations.calculate_platform_fee(1000, 3) == 300


def test_total_pot_is_floored():
    # 999 * 0.9 = 899.1
    assert pot_calculations.calculate_total_pot(333, 3, 0.1) == 899
    # The remainder of the floor goes to the platform
    assert pot_calculations.calculate_platform_fee(333, 3, 0.1) == 100


def test_total_pot_without_fee():
    assert pot_calculations.calculate_total_pot(500, 4, 0) == 2000


def test_total_pot_no_teams():
    assert pot_calculations.calculate_total_pot(1000, 0) == 0


@pytest.mark.parametrize(
    "pot,percentage,expected",
    [
        (2700, 0.6, 1620),
        (2700, 0.15, 405),
        (2700, 0.125, 337),  # 337.5 floors down
        (2700, 0.075, 202),  # 202.5 floors down
        (10, 0.05, 0),
        (2700, 0, 0),
    ],
)
def test_calculate_reward_amount(pot, percentage, expected):
    assert pot_calculations.calculate_reward_amount(pot, percentage) == expected


def test_default_reward_structure():
    """Default split is 60/15/12.5/7.5/5 over positions 1-5 and sums to exactly 100%."""
    rewards = pot_calculations.default_reward_structure()
    assert [r.position for r in rewards] == [1, 2, 3, 4, 5]
    assert [r.percentage for r in rewards] == [0.6, 0.15, 0.125, 0.075, 0.05]
    assert pot_calculations.total_percentage(rewards) == Decimal("1")
    assert pot_calculations.validate_reward_percentages(rewards) == (True, Decimal("1"))


def test_validate_reward_percentages_over_100():
    is_valid, total = pot_calculations.validate_reward_percentages(_splits(0.7, 0.4))
    assert is_valid is False
    assert total == Decimal("1.1")


def test_validate_reward_percentages_negative():
    is_valid, _ = pot_calculations.validate_reward_percentages(_splits(0.5, -0.1))
    assert is_valid is False


def test_validate_reward_percentages_under_100_is_valid():
    # Whatever is not distributed stays with the platform
    is_valid, total = pot_calculations.validate_reward_percentages(_splits(0.5, 0.2))
    assert is_valid is True
    assert total == Decimal("0.7")


def test_get_reward_structure_falls_back_to_default():
    assert pot_calculations.get_reward_structure(None) == pot_calculations.default_reward_structure()
    assert pot_calculations.get_reward_structure([]) == pot_calculations.default_reward_structure()


def test_get_reward_structure_uses_custom_rewards():
    custom = _splits(1.0)
    assert pot_calculations.get_reward_structure(custom) == custom


def test_prize_distribution_never_exceeds_pot():
    for pot in (0, 1, 7, 99, 2700, 123457):
        distribution = pot_calculations.calculate_prize_distribution(pot)
        assert len(distribution) == 5
        assert sum(item["amount"] for item in distribution) <= pot


def test_prize_distribution_preview():
    distribution = pot_calculations.calculate_prize_distribution(2700, _splits(0.6, 0.4))
    assert distribution == [
        {"position": 1, "percentage": 0.6, "amount": 1620},
        {"position": 2, "percentage": 0.4, "amount": 1080},
    ]
