"""
Goal vault rules.

A vault locks savings toward one goal. It grows through "save today"
contributions taken from the wallet and can be broken at any time, which
refunds everything saved but ends the vault for good.

    ACTIVE --save--> ACTIVE
    ACTIVE --save reaching target--> COMPLETED
    ACTIVE | COMPLETED --break--> BROKEN
"""
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal

from ledger.errors import GoalTooLarge, InsufficientFunds, InvalidInput, VaultClosed, to_amount, to_text

logger = logging.getLogger(__name__)

ACTIVE = 'active'
COMPLETED = 'completed'
BROKEN = 'broken'

DEFAULT_INCOME_CAP_RATIO = Decimal('0.20')
DEFAULT_BONUS_INTERVAL = 7
DEFAULT_BONUS_POINTS = 10


@dataclass(frozen=True)
class VaultState:
    goal_name: str
    target_amount: Decimal
    daily_save_amount: Decimal
    saved_amount: Decimal = Decimal('0')
    streak_days: int = 0
    is_locked: bool = True
    is_broken: bool = False
    emoji: str = '🎯'
    broken_at: datetime | None = None
    last_save_date: date | None = None
    completed_at: datetime | None = None
    id: int | None = None

    @property
    def status(self) -> str:
        if self.is_broken:
            return BROKEN
        if self.completed_at is not None:
            return COMPLETED
        return ACTIVE

    @property
    def progress(self) -> float:
        return min(100.0, float(self.saved_amount / self.target_amount * 100))


@dataclass(frozen=True)
class SaveResult:
    vault: VaultState
    wallet_balance: Decimal
    bonus_points: int


@dataclass(frozen=True)
class BreakResult:
    vault: VaultState
    wallet_balance: Decimal
    refunded: Decimal


def max_vault_target(monthly_income, ratio=DEFAULT_INCOME_CAP_RATIO) -> Decimal:
    return Decimal(str(monthly_income or 0)) * Decimal(str(ratio))


def create_vault(goal_name, target_amount, daily_amount, monthly_income, emoji='🎯',
                 ratio=DEFAULT_INCOME_CAP_RATIO) -> VaultState:
    name = to_text(goal_name, 'goal_name')
    if not name:
        raise InvalidInput('Please fill all fields with valid values.')
    target = to_amount(target_amount, 'target_amount')
    daily = to_amount(daily_amount, 'daily_save_amount')
    cap = max_vault_target(monthly_income, ratio)
    if target > cap:
        raise GoalTooLarge(
            f'Goal amount too high: you can only save up to {int(cap)} PP '
            f'({Decimal(str(ratio)) * 100:.0f}% of your monthly income) per goal.'
        )
    return VaultState(goal_name=name, target_amount=target, daily_save_amount=daily,
                      emoji=to_text(emoji, 'emoji') or '🎯')


def streak_bonus(streak_days: int, interval=DEFAULT_BONUS_INTERVAL, points=DEFAULT_BONUS_POINTS) -> int:
    """Cumulative bonus earned by a vault after ``streak_days`` saves."""
    return (streak_days // interval) * points


def save_to_vault(vault: VaultState, amount, wallet_balance, now=None,
                  interval=DEFAULT_BONUS_INTERVAL, points=DEFAULT_BONUS_POINTS) -> SaveResult:
    now = now or datetime.now()
    amount = to_amount(amount)
    wallet_balance = Decimal(str(wallet_balance))
    if vault.status != ACTIVE:
        raise VaultClosed(f'{vault.goal_name} is {vault.status} and no longer accepts savings.')
    if amount > wallet_balance:
        raise InsufficientFunds('Insufficient balance.')

    saved = vault.saved_amount + amount
    streak_days = vault.streak_days + 1
    completed_at = now if saved >= vault.target_amount else None
    updated = replace(vault, saved_amount=saved, streak_days=streak_days,
                      last_save_date=now.date(), completed_at=completed_at)
    # only the bonus for a newly crossed interval is paid out
    bonus = streak_bonus(streak_days, interval, points) - streak_bonus(vault.streak_days, interval, points)
    if completed_at is not None:
        logger.info('vault %s reached its target of %s', vault.id, vault.target_amount)
    return SaveResult(vault=updated, wallet_balance=wallet_balance - amount, bonus_points=bonus)


def break_vault(vault: VaultState, wallet_balance, now=None) -> BreakResult:
    if vault.is_broken:
        raise VaultClosed(f'{vault.goal_name} is already broken.')
    now = now or datetime.now()
    updated = replace(vault, is_broken=True, is_locked=False, broken_at=now)
    refunded = vault.saved_amount
    return BreakResult(vault=updated, wallet_balance=Decimal(str(wallet_balance)) + refunded, refunded=refunded)
