from dataclasses import dataclass, replace
from datetime import date, datetime

ACTIVITY = 'activity'
NET_BALANCE = 'net_balance'
STREAK_RULES = (ACTIVITY, NET_BALANCE)

FIRST_DAY_POINTS = 10
NEW_DAY_POINTS = 10
SAME_DAY_POINTS = 5

ACHIEVEMENTS = [
    {'name': 'Beginner', 'min_streak': 1, 'description': 'Started your journey!'},
    {'name': 'Consistent', 'min_streak': 3, 'description': '3 days streak'},
    {'name': 'Committed', 'min_streak': 7, 'description': '7 days on fire!'},
    {'name': 'Dedicated', 'min_streak': 14, 'description': '2 weeks strong'},
    {'name': 'Champion', 'min_streak': 30, 'description': '30 days champion!'},
    {'name': 'Legend', 'min_streak': 60, 'description': '2 months legend!'},
]


@dataclass(frozen=True)
class RewardsState:
    points: int = 0
    streak: int = 0
    last_update: date | None = None
    lifetime_points: int = 0

    def award(self, points: int) -> 'RewardsState':
        return replace(self, points=self.points + points, lifetime_points=self.lifetime_points + points)


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def days_since(last_update, today) -> int | None:
    if last_update is None:
        return None
    return (_as_date(today) - _as_date(last_update)).days


def apply_streak_update(rewards: RewardsState | None, today, rule: str = ACTIVITY,
                        daily_balance=None) -> RewardsState:
    """Return the rewards after one qualifying action on ``today``.

    ``rewards`` is None when the user has no rewards row yet. The
    ``net_balance`` rule needs ``daily_balance``, the signed net of the
    user's transactions for ``today``.
    """
    today = _as_date(today)
    if rule not in STREAK_RULES:
        raise ValueError(f'unknown streak rule: {rule}')
    if rule == NET_BALANCE:
        return _apply_net_balance(rewards, today, daily_balance or 0)

    diff = days_since(rewards.last_update, today) if rewards else None
    if diff is None:
        base = rewards or RewardsState()
        return replace(base.award(FIRST_DAY_POINTS), streak=1, last_update=today)
    if diff <= 0:
        return replace(rewards.award(SAME_DAY_POINTS), last_update=today)
    if diff == 1:
        return replace(rewards.award(NEW_DAY_POINTS), streak=rewards.streak + 1, last_update=today)
    return replace(rewards.award(NEW_DAY_POINTS), streak=1, last_update=today)


def _apply_net_balance(rewards, today, daily_balance):
    base = rewards or RewardsState()
    diff = days_since(base.last_update, today)
    if diff is not None and diff <= 0:
        return base
    if daily_balance < 0:
        return replace(base, streak=0, last_update=today)
    streak = base.streak + 1 if diff == 1 else 1
    return replace(base.award(NEW_DAY_POINTS), streak=streak, last_update=today)


def effective_streak(rewards: RewardsState | None, today) -> int:
    """Streak as it stands today: a gap of more than one day means it is already lost."""
    if rewards is None:
        return 0
    diff = days_since(rewards.last_update, today)
    if diff is None or diff > 1:
        return 0
    return rewards.streak


def badge_for(streak: int) -> dict:
    current = None
    for a in ACHIEVEMENTS:
        if streak >= a['min_streak']:
            current = a
    upcoming = next((a for a in ACHIEVEMENTS if streak < a['min_streak']), None)
    return {
        'badge': current['name'] if current else None,
        'next_badge': upcoming['name'] if upcoming else None,
        'days_to_next': upcoming['min_streak'] - streak if upcoming else 0,
        'unlocked': [a['name'] for a in ACHIEVEMENTS if streak >= a['min_streak']],
    }
