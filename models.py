from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

Money = db.Numeric(12, 2, asdecimal=True)


class User(db.Model):
    # The "profiles" table: one row per user, holds the wallet
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    wallet_balance = db.Column(Money, nullable=False, default=0)
    monthly_income = db.Column(Money, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    transactions = db.relationship('Transaction', backref='user', lazy=True, cascade="all, delete-orphan")
    rewards = db.relationship('Rewards', backref='user', uselist=False, cascade="all, delete-orphan")
    savings_goals = db.relationship('SavingsGoal', backref='user', lazy=True, cascade="all, delete-orphan")
    vaults = db.relationship('GoalVault', backref='user', lazy=True, cascade="all, delete-orphan")
    subscriptions = db.relationship('Subscription', backref='user', lazy=True, cascade="all, delete-orphan")


class Transaction(db.Model):
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    amount = db.Column(Money, nullable=False)  # always positive
    ttype = db.Column(db.String(20), nullable=False)  # 'income' or 'expense'
    category = db.Column(db.String(100), nullable=False, default='General Expense')
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now, index=True)


class Rewards(db.Model):
    __tablename__ = 'rewards'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    lifetime_points = db.Column(db.Integer, nullable=False, default=0)
    streak = db.Column(db.Integer, nullable=False, default=0)
    last_update = db.Column(db.Date, nullable=True)


class SavingsGoal(db.Model):
    __tablename__ = 'savings_goals'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    target_amount = db.Column(Money, nullable=False)
    current_amount = db.Column(Money, nullable=False, default=0)
    deadline = db.Column(db.Date, nullable=False)
    emoji = db.Column(db.String(16), nullable=False, default='🎯')
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    completed_at = db.Column(db.DateTime, nullable=True)


class GoalVault(db.Model):
    __tablename__ = 'goal_vaults'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    goal_name = db.Column(db.String(120), nullable=False)
    target_amount = db.Column(Money, nullable=False)
    saved_amount = db.Column(Money, nullable=False, default=0)
    daily_save_amount = db.Column(Money, nullable=False)
    streak_days = db.Column(db.Integer, nullable=False, default=0)
    is_locked = db.Column(db.Boolean, nullable=False, default=True)
    is_broken = db.Column(db.Boolean, nullable=False, default=False, index=True)
    broken_at = db.Column(db.DateTime, nullable=True)
    last_save_date = db.Column(db.Date, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    emoji = db.Column(db.String(16), nullable=False, default='🎯')
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)


class Subscription(db.Model):
    __tablename__ = 'subscriptions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    cost = db.Column(Money, nullable=False)
    renewal_date = db.Column(db.Date, nullable=False)
