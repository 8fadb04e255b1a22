import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal

from ledger.errors import InvalidInput, to_amount, to_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoalState:
    title: str
    target_amount: Decimal
    deadline: date
    current_amount: Decimal = Decimal('0')
    emoji: str = '🎯'
    completed_at: datetime | None = None
    id: int | None = None


def _parse_deadline(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise InvalidInput('Please fill in all fields.')
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError:
        raise InvalidInput('Invalid deadline format, expected YYYY-MM-DD.')


def create_goal(title, target_amount, deadline, emoji='🎯') -> GoalState:
    title = to_text(title, 'title')
    if not title:
        raise InvalidInput('Please fill in all fields.')
    return GoalState(
        title=title,
        target_amount=to_amount(target_amount, 'target_amount'),
        deadline=_parse_deadline(deadline),
        emoji=to_text(emoji, 'emoji') or '🎯',
    )


def add_to_goal(goal: GoalState, amount, now=None) -> GoalState:
    """Add to a goal; ``completed_at`` is stamped once and never moves after that."""
    amount = to_amount(amount)
    current = goal.current_amount + amount
    completed_at = goal.completed_at
    if completed_at is None and current >= goal.target_amount:
        completed_at = now or datetime.now()
        logger.info('savings goal %s completed', goal.id)
    return replace(goal, current_amount=current, completed_at=completed_at)


def progress_percent(goal: GoalState) -> float:
    return min(100.0, float(goal.current_amount / goal.target_amount * 100))


def days_left(goal: GoalState, today=None) -> int:
    today = today or date.today()
    return max(0, (goal.deadline - today).days)


def daily_savings_needed(goal: GoalState, today=None) -> Decimal:
    remaining = max(goal.target_amount - goal.current_amount, Decimal('0'))
    left = days_left(goal, today)
    if left <= 0:
        return Decimal('0.00')
    return (remaining / left).quantize(Decimal('0.01'))


def motivational_message(progress: float) -> str:
    if progress >= 100:
        return '🎉 Goal achieved! Amazing work!'
    if progress >= 80:
        return "🔥 You're 80% there! Keep going!"
    if progress >= 50:
        return "💪 Halfway there! You're doing great!"
    if progress >= 25:
        return '🌟 Great start! Keep building momentum!'
    return '🚀 Every journey starts with a single step!'
