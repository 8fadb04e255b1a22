import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ledger import goals, streak, vault
from ledger.classifier import category_for
from ledger.errors import InvalidInput, to_amount, to_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSettings:
    streak_rule: str = streak.ACTIVITY
    vault_income_cap_ratio: Decimal = vault.DEFAULT_INCOME_CAP_RATIO
    vault_bonus_interval: int = vault.DEFAULT_BONUS_INTERVAL
    vault_bonus_points: int = vault.DEFAULT_BONUS_POINTS

    @classmethod
    def from_config(cls, config):
        return cls(
            streak_rule=config.get('STREAK_RULE', streak.ACTIVITY),
            vault_income_cap_ratio=Decimal(str(config.get('VAULT_INCOME_CAP_RATIO', vault.DEFAULT_INCOME_CAP_RATIO))),
            vault_bonus_interval=int(config.get('VAULT_BONUS_INTERVAL_DAYS', vault.DEFAULT_BONUS_INTERVAL)),
            vault_bonus_points=int(config.get('VAULT_BONUS_POINTS', vault.DEFAULT_BONUS_POINTS)),
        )


class LedgerService:
    """Runs each user action as one unit of work over the injected repository."""

    def __init__(self, repository, settings=None, clock=datetime.now):
        self.repo = repository
        self.settings = settings or LedgerSettings()
        self.clock = clock

    # ---------------------- Transactions & streak ----------------------
    def record_transaction(self, user_id, amount, ttype, description='', category=None):
        if ttype not in ('income', 'expense'):
            raise InvalidInput('Type must be income or expense.')
        amount = to_amount(amount)
        category = to_text(category, 'category')
        description = to_text(description, 'description') or category
        if not description:
            raise InvalidInput('Please fill in all fields.')
        now = self.clock()
        with self.repo.atomic():
            tx = self.repo.add_transaction(user_id, amount, ttype, category_for(ttype, description, category),
                                           description, created_at=now)
            rewards = self._maybe_update_streak(user_id, ttype, now)
        return tx, rewards

    def _maybe_update_streak(self, user_id, ttype, now):
        rule = self.settings.streak_rule
        # the activity rule only counts income; the net-balance rule looks at every entry
        if rule == streak.ACTIVITY and ttype != 'income':
            return self.repo.get_rewards(user_id)
        daily_balance = self.repo.net_for_day(user_id, now.date()) if rule == streak.NET_BALANCE else None
        before = self.repo.get_rewards(user_id)
        after = streak.apply_streak_update(before, now.date(), rule=rule, daily_balance=daily_balance)
        if after != before:
            self.repo.save_rewards(user_id, after)
            logger.info('user %s streak %s -> %s, points %s', user_id,
                        before.streak if before else 0, after.streak, after.points)
        return after

    # ---------------------- Profile ----------------------
    def deposit(self, user_id, amount) -> Decimal:
        amount = to_amount(amount)
        with self.repo.atomic():
            return self.repo.credit_wallet(user_id, amount)

    def set_monthly_income(self, user_id, amount) -> Decimal:
        amount = to_amount(amount, 'monthly_income')
        with self.repo.atomic():
            self.repo.set_monthly_income(user_id, amount)
        return amount

    # ---------------------- Vaults ----------------------
    def create_vault(self, user_id, goal_name, target_amount, daily_amount, emoji='🎯'):
        profile = self.repo.get_profile(user_id)
        state = vault.create_vault(goal_name, target_amount, daily_amount, profile.monthly_income,
                                   emoji=emoji, ratio=self.settings.vault_income_cap_ratio)
        with self.repo.atomic():
            created = self.repo.save_vault(user_id, state)
        logger.info('user %s created vault %s (%s)', user_id, created.id, created.goal_name)
        return created

    def save_to_vault(self, user_id, vault_id, amount=None):
        """Save into a vault. Without ``amount`` the vault's daily amount is used."""
        current = self.repo.get_vault(user_id, vault_id)
        if amount is None:
            amount = current.daily_save_amount
        result = vault.save_to_vault(current, amount, self.repo.wallet_balance(user_id), now=self.clock(),
                                     interval=self.settings.vault_bonus_interval,
                                     points=self.settings.vault_bonus_points)
        with self.repo.atomic():
            saved = self.repo.save_vault(user_id, result.vault)
            wallet = self.repo.debit_wallet(user_id, result.vault.saved_amount - current.saved_amount)
            if result.bonus_points > 0:
                self.repo.award_points(user_id, result.bonus_points)
        logger.info('user %s saved %s into vault %s, streak %s days, bonus %s',
                    user_id, amount, vault_id, saved.streak_days, result.bonus_points)
        return saved, wallet, result.bonus_points

    def break_vault(self, user_id, vault_id):
        current = self.repo.get_vault(user_id, vault_id)
        result = vault.break_vault(current, self.repo.wallet_balance(user_id), now=self.clock())
        with self.repo.atomic():
            broken = self.repo.save_vault(user_id, result.vault)
            wallet = self.repo.credit_wallet(user_id, result.refunded)
        logger.info('user %s broke vault %s, %s refunded', user_id, vault_id, result.refunded)
        return broken, wallet, result.refunded

    # ---------------------- Savings goals ----------------------
    def create_goal(self, user_id, title, target_amount, deadline, emoji='🎯'):
        state = goals.create_goal(title, target_amount, deadline, emoji)
        with self.repo.atomic():
            return self.repo.save_goal(user_id, state)

    def add_to_goal(self, user_id, goal_id, amount):
        updated = goals.add_to_goal(self.repo.get_goal(user_id, goal_id), amount, now=self.clock())
        with self.repo.atomic():
            return self.repo.save_goal(user_id, updated)

    def delete_goal(self, user_id, goal_id):
        with self.repo.atomic():
            self.repo.delete_goal(user_id, goal_id)

    # ---------------------- Subscriptions ----------------------
    def add_subscription(self, user_id, name, cost, renewal_date):
        name = to_text(name, 'name')
        if not name or not renewal_date:
            raise InvalidInput('Please fill in all subscription fields.')
        cost = to_amount(cost, 'cost')
        try:
            renewal = datetime.strptime(str(renewal_date)[:10], '%Y-%m-%d').date()
        except ValueError:
            raise InvalidInput('Invalid renewal date format, expected YYYY-MM-DD.')
        with self.repo.atomic():
            return self.repo.add_subscription(user_id, name, cost, renewal)
