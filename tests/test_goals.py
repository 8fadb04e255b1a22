from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from ledger.errors import InvalidInput
from ledger.goals import (add_to_goal, create_goal, daily_savings_needed, days_left, motivational_message,
                          progress_percent)

FIRST = datetime(2026, 3, 10, 12, 0)


def make_goal(target=1000):
    return create_goal('New Phone', target, '2026-04-09', '📱')


def test_create_goal():
    g = make_goal()
    assert g.current_amount == 0
    assert g.deadline == date(2026, 4, 9)
    assert g.completed_at is None


@pytest.mark.parametrize('title, target, deadline', [
    ('', 100, '2026-04-01'),
    ('Phone', 0, '2026-04-01'),
    ('Phone', 100, None),
    ('Phone', 100, '04/01/2026'),
])
def test_invalid_goal(title, target, deadline):
    with pytest.raises(InvalidInput):
        create_goal(title, target, deadline)


def test_add_to_goal_accumulates():
    g = add_to_goal(make_goal(), 250, now=FIRST)
    g = add_to_goal(g, '100.50', now=FIRST)
    assert g.current_amount == Decimal('350.50')
    assert g.completed_at is None


def test_completion_is_stamped_once():
    g = add_to_goal(make_goal(), 1000, now=FIRST)
    assert g.completed_at == FIRST
    for later in range(1, 4):
        g = add_to_goal(g, 50, now=FIRST + timedelta(days=later))
    assert g.completed_at == FIRST
    assert g.current_amount == 1150


def test_non_positive_addition_rejected():
    with pytest.raises(InvalidInput):
        add_to_goal(make_goal(), 0)


def test_progress_is_capped_at_100():
    g = add_to_goal(make_goal(), 1500, now=FIRST)
    assert progress_percent(g) == 100.0
    assert progress_percent(add_to_goal(make_goal(), 250, now=FIRST)) == 25.0


def test_daily_savings_needed():
    g = add_to_goal(make_goal(), 100, now=FIRST)
    today = date(2026, 3, 10)
    assert days_left(g, today) == 30
    assert daily_savings_needed(g, today) == Decimal('30.00')
    assert daily_savings_needed(g, date(2026, 5, 1)) == Decimal('0.00')


@pytest.mark.parametrize('progress, prefix', [
    (100, '🎉'), (85, '🔥'), (50, '💪'), (25, '🌟'), (0, '🚀'),
])
def test_motivational_message(progress, prefix):
    assert motivational_message(progress).startswith(prefix)
