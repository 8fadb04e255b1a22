"""
Persistence for the ledger.

LedgerRepository wraps one SQLAlchemy session and converts between ORM rows
and the frozen state objects the ledger rules work on. Writes only flush;
``atomic()`` owns the commit so that every write made inside one block lands
in a single database transaction.
"""
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import case, func

from ledger.errors import NotFound
from ledger.goals import GoalState
from ledger.streak import RewardsState
from ledger.vault import VaultState
from models import GoalVault, Rewards, SavingsGoal, Subscription, Transaction, User

_VAULT_FIELDS = ('goal_name', 'target_amount', 'daily_save_amount', 'saved_amount', 'streak_days',
                 'is_locked', 'is_broken', 'emoji', 'broken_at', 'last_save_date', 'completed_at')
_GOAL_FIELDS = ('title', 'target_amount', 'deadline', 'current_amount', 'emoji', 'completed_at')


def _decimal(value):
    return Decimal(str(value)) if value is not None else Decimal('0')


class LedgerRepository:
    def __init__(self, session):
        self.session = session

    @contextmanager
    def atomic(self):
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # ---------------------- Profile / wallet ----------------------
    def get_profile(self, user_id) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFound('User not found.')
        return user

    def wallet_balance(self, user_id) -> Decimal:
        return _decimal(self.get_profile(user_id).wallet_balance)

    def credit_wallet(self, user_id, amount) -> Decimal:
        user = self.get_profile(user_id)
        user.wallet_balance = _decimal(user.wallet_balance) + Decimal(str(amount))
        self.session.flush()
        return _decimal(user.wallet_balance)

    def debit_wallet(self, user_id, amount) -> Decimal:
        return self.credit_wallet(user_id, -Decimal(str(amount)))

    def set_monthly_income(self, user_id, amount):
        user = self.get_profile(user_id)
        user.monthly_income = amount
        self.session.flush()

    # ---------------------- Rewards ----------------------
    def _rewards_row(self, user_id):
        return self.session.query(Rewards).filter_by(user_id=user_id).first()

    def get_rewards(self, user_id) -> RewardsState | None:
        row = self._rewards_row(user_id)
        if row is None:
            return None
        return RewardsState(points=row.points, streak=row.streak, last_update=row.last_update,
                            lifetime_points=row.lifetime_points or 0)

    def save_rewards(self, user_id, state: RewardsState) -> RewardsState:
        row = self._rewards_row(user_id)
        if row is None:
            row = Rewards(user_id=user_id)
            self.session.add(row)
        row.points = state.points
        row.streak = state.streak
        row.last_update = state.last_update
        row.lifetime_points = state.lifetime_points
        self.session.flush()
        return state

    def award_points(self, user_id, points: int) -> RewardsState:
        """Add points to both the spendable and lifetime counters, creating the row if needed."""
        state = self.get_rewards(user_id) or RewardsState()
        return self.save_rewards(user_id, state.award(points))

    # ---------------------- Vaults ----------------------
    def _vault_row(self, user_id, vault_id):
        row = self.session.query(GoalVault).filter_by(id=vault_id, user_id=user_id).first()
        if row is None:
            raise NotFound('Vault not found.')
        return row

    @staticmethod
    def _vault_state(row) -> VaultState:
        return VaultState(
            id=row.id,
            goal_name=row.goal_name,
            target_amount=_decimal(row.target_amount),
            daily_save_amount=_decimal(row.daily_save_amount),
            saved_amount=_decimal(row.saved_amount),
            streak_days=row.streak_days or 0,
            is_locked=row.is_locked,
            is_broken=row.is_broken,
            emoji=row.emoji,
            broken_at=row.broken_at,
            last_save_date=row.last_save_date,
            completed_at=row.completed_at,
        )

    def get_vault(self, user_id, vault_id) -> VaultState:
        return self._vault_state(self._vault_row(user_id, vault_id))

    def list_vaults(self, user_id, include_broken=False) -> list[VaultState]:
        q = self.session.query(GoalVault).filter_by(user_id=user_id)
        if not include_broken:
            q = q.filter_by(is_broken=False)
        return [self._vault_state(r) for r in q.order_by(GoalVault.created_at.desc(), GoalVault.id.desc()).all()]

    def save_vault(self, user_id, state: VaultState) -> VaultState:
        if state.id is None:
            row = GoalVault(user_id=user_id)
            self.session.add(row)
        else:
            row = self._vault_row(user_id, state.id)
        for field in _VAULT_FIELDS:
            setattr(row, field, getattr(state, field))
        self.session.flush()
        return self._vault_state(row)

    # ---------------------- Savings goals ----------------------
    def _goal_row(self, user_id, goal_id):
        row = self.session.query(SavingsGoal).filter_by(id=goal_id, user_id=user_id).first()
        if row is None:
            raise NotFound('Goal not found.')
        return row

    @staticmethod
    def _goal_state(row) -> GoalState:
        return GoalState(
            id=row.id,
            title=row.title,
            target_amount=_decimal(row.target_amount),
            deadline=row.deadline,
            current_amount=_decimal(row.current_amount),
            emoji=row.emoji,
            completed_at=row.completed_at,
        )

    def get_goal(self, user_id, goal_id) -> GoalState:
        return self._goal_state(self._goal_row(user_id, goal_id))

    def list_goals(self, user_id, include_completed=False) -> list[GoalState]:
        q = self.session.query(SavingsGoal).filter_by(user_id=user_id)
        if not include_completed:
            q = q.filter(SavingsGoal.completed_at.is_(None))
        return [self._goal_state(r) for r in q.order_by(SavingsGoal.created_at.desc(), SavingsGoal.id.desc()).all()]

    def save_goal(self, user_id, state: GoalState) -> GoalState:
        if state.id is None:
            row = SavingsGoal(user_id=user_id)
            self.session.add(row)
        else:
            row = self._goal_row(user_id, state.id)
        for field in _GOAL_FIELDS:
            setattr(row, field, getattr(state, field))
        self.session.flush()
        return self._goal_state(row)

    def delete_goal(self, user_id, goal_id):
        self.session.delete(self._goal_row(user_id, goal_id))
        self.session.flush()

    # ---------------------- Transactions ----------------------
    def add_transaction(self, user_id, amount, ttype, category, description, created_at=None) -> Transaction:
        tx = Transaction(user_id=user_id, amount=amount, ttype=ttype, category=category,
                         description=description, created_at=created_at or datetime.now())
        self.session.add(tx)
        self.session.flush()
        return tx

    def net_for_day(self, user_id, day: date) -> Decimal:
        start = datetime.combine(day, datetime.min.time())
        total = self.session.query(
            func.sum(case((Transaction.ttype == 'income', Transaction.amount), else_=-Transaction.amount))
        ).filter(
            Transaction.user_id == user_id,
            Transaction.created_at >= start,
            Transaction.created_at < start + timedelta(days=1),
        ).scalar()
        return _decimal(total)

    # ---------------------- Subscriptions ----------------------
    def add_subscription(self, user_id, name, cost, renewal_date) -> Subscription:
        sub = Subscription(user_id=user_id, name=name, cost=cost, renewal_date=renewal_date)
        self.session.add(sub)
        self.session.flush()
        return sub

    def list_subscriptions(self, user_id) -> list[Subscription]:
        return self.session.query(Subscription).filter_by(user_id=user_id).order_by(Subscription.renewal_date).all()
