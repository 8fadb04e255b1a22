import os
from datetime import date, datetime
from flask import Blueprint, Flask, current_app, request, session, jsonify
from werkzeug.security import generate_password_hash, check_password_hash
from sqlalchemy import func, case
from sqlalchemy.exc import SQLAlchemyError
from models import db, User, Transaction
from ledger.errors import InvalidInput, LedgerError, to_text
from ledger.goals import daily_savings_needed, days_left, motivational_message, progress_percent
from ledger.repository import LedgerRepository
from ledger.service import LedgerService, LedgerSettings
from ledger.streak import STREAK_RULES, badge_for, effective_streak
from ml.insights import (advice_context, category_breakdown, generate_insights, predict_next_month_expense,
                         spending_alert, upcoming_subscriptions)

bp = Blueprint('finance', __name__)

def create_app(test_config=None):
    app = Flask(__name__)
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///finance.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')
    app.config['STREAK_RULE'] = os.environ.get('STREAK_RULE', 'activity')
    app.config['VAULT_INCOME_CAP_RATIO'] = os.environ.get('VAULT_INCOME_CAP_RATIO', '0.20')
    app.config['VAULT_BONUS_INTERVAL_DAYS'] = int(os.environ.get('VAULT_BONUS_INTERVAL_DAYS', 7))
    app.config['VAULT_BONUS_POINTS'] = int(os.environ.get('VAULT_BONUS_POINTS', 10))
    app.config['SUBSCRIPTION_ALERT_DAYS'] = int(os.environ.get('SUBSCRIPTION_ALERT_DAYS', 7))
    if test_config:
        app.config.update(test_config)
    if app.config['STREAK_RULE'] not in STREAK_RULES:
        raise ValueError(f"STREAK_RULE must be one of {STREAK_RULES}, got {app.config['STREAK_RULE']!r}")
    db.init_app(app)
    app.register_blueprint(bp)
    app.register_error_handler(LedgerError, handle_ledger_error)
    app.register_error_handler(SQLAlchemyError, handle_store_error)
    with app.app_context():
        db.create_all()
    app.logger.info('Using database %s with streak rule %s', app.config['SQLALCHEMY_DATABASE_URI'], app.config['STREAK_RULE'])
    return app

# ---------------------- Error Handlers ----------------------
def handle_ledger_error(e):
    return jsonify({'success': False, 'message': e.message}), e.status_code

def handle_store_error(e):
    db.session.rollback()
    current_app.logger.exception('database write failed: %s', e)
    return jsonify({'success': False, 'message': 'Something went wrong, please try again.'}), 500

# ---------------------- Auth Helpers ----------------------
def current_user():
    uid = session.get('user_id')
    if uid:
        return db.session.get(User, uid)
    return None

def login_required(view_func):
    from functools import wraps
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if not current_user():
            return jsonify({'success': False, 'message': 'Login required.'}), 401
        return view_func(*args, **kwargs)
    return wrapped

def ledger():
    return LedgerService(LedgerRepository(db.session), LedgerSettings.from_config(current_app.config))

def payload():
    data = request.get_json(silent=True)
    if data is None:
        return request.form
    if not isinstance(data, dict):
        raise InvalidInput('Request body must be a JSON object.')
    return data

# ---------------------- Serializers ----------------------
def _money(value):
    return float(value or 0)

def transaction_json(tx):
    return {
        'id': tx.id,
        'created_at': tx.created_at.isoformat(),
        'amount': _money(tx.amount),
        'type': tx.ttype,
        'category': tx.category,
        'description': tx.description or ''
    }

def vault_json(v):
    return {
        'id': v.id,
        'goal_name': v.goal_name,
        'emoji': v.emoji,
        'target_amount': _money(v.target_amount),
        'saved_amount': _money(v.saved_amount),
        'daily_save_amount': _money(v.daily_save_amount),
        'streak_days': v.streak_days,
        'is_locked': v.is_locked,
        'is_broken': v.is_broken,
        'status': v.status,
        'progress': round(v.progress, 1),
        'broken_at': v.broken_at.isoformat() if v.broken_at else None,
        'completed_at': v.completed_at.isoformat() if v.completed_at else None,
        'last_save_date': v.last_save_date.isoformat() if v.last_save_date else None,
    }

def goal_json(g):
    progress = progress_percent(g)
    return {
        'id': g.id,
        'title': g.title,
        'emoji': g.emoji,
        'target_amount': _money(g.target_amount),
        'current_amount': _money(g.current_amount),
        'deadline': g.deadline.isoformat(),
        'completed_at': g.completed_at.isoformat() if g.completed_at else None,
        'progress': round(progress, 1),
        'days_left': days_left(g),
        'daily_savings_needed': _money(daily_savings_needed(g)),
        'message': motivational_message(progress),
    }

def rewards_json(user_id):
    state = LedgerRepository(db.session).get_rewards(user_id)
    streak = effective_streak(state, date.today())
    return dict({
        'points': state.points if state else 0,
        'lifetime_points': state.lifetime_points if state else 0,
        'streak': streak,
        'last_update': state.last_update.isoformat() if state and state.last_update else None,
    }, **badge_for(streak))

# ---------------------- Routes: Auth ----------------------
@bp.route('/register', methods=['POST'])
def register():
    data = payload()
    name = to_text(data.get('name'), 'name')
    email = to_text(data.get('email'), 'email').lower()
    password = data.get('password') or ''
    if not isinstance(password, str):
        raise InvalidInput('password must be text.')
    if not name or not email or not password:
        return jsonify({'success': False, 'message': 'All fields are required.'}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({'success': False, 'message': 'Email already registered.'}), 400
    user = User(name=name, email=email, password_hash=generate_password_hash(password))
    db.session.add(user)
    db.session.commit()
    current_app.logger.info('registered user %s', user.id)
    return jsonify({'success': True, 'message': 'Registration successful. Please log in.'}), 201

@bp.route('/login', methods=['POST'])
def login():
    data = payload()
    email = to_text(data.get('email'), 'email').lower()
    password = data.get('password') or ''
    if not isinstance(password, str):
        raise InvalidInput('password must be text.')
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password):
        return jsonify({'success': False, 'message': 'Invalid credentials.'}), 401
    session['user_id'] = user.id
    return jsonify({'success': True, 'message': 'Welcome back!'})

@bp.route('/logout')
def logout():
    session.clear()
    return jsonify({'success': True, 'message': 'Logged out.'})

# ---------------------- Routes: Profile ----------------------
@bp.route('/api/profile')
@login_required
def api_profile():
    user = current_user()
    return jsonify({
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'wallet_balance': _money(user.wallet_balance),
        'monthly_income': _money(user.monthly_income),
        'needs_income': not user.monthly_income,
        'active_vaults': len(LedgerRepository(db.session).list_vaults(user.id)),
    })

@bp.route('/api/profile/income', methods=['POST'])
@login_required
def api_set_income():
    income = ledger().set_monthly_income(current_user().id, payload().get('monthly_income'))
    return jsonify({'success': True, 'monthly_income': _money(income)})

@bp.route('/api/wallet/deposit', methods=['POST'])
@login_required
def api_deposit():
    balance = ledger().deposit(current_user().id, payload().get('amount'))
    return jsonify({'success': True, 'wallet_balance': _money(balance)})

# ---------------------- API Helpers ----------------------
def _apply_year_month_filters(query, year: int | None, month: int | None):
    if year:
        query = query.filter(func.strftime('%Y', Transaction.created_at) == f'{year:04d}')
    if month:
        query = query.filter(func.strftime('%m', Transaction.created_at) == f'{month:02d}')
    return query

# ---------------------- Routes: Transactions ----------------------
@bp.route('/api/transactions', methods=['POST'])
@login_required
def add_transaction():
    data = payload()
    user = current_user()
    tx, rewards = ledger().record_transaction(
        user.id,
        data.get('amount'),
        to_text(data.get('type'), 'type').lower() or 'expense',
        description=data.get('description', ''),
        category=data.get('category'),
    )
    return jsonify({
        'success': True,
        'message': 'Transaction added.',
        'transaction': transaction_json(tx),
        'rewards': {'points': rewards.points, 'streak': rewards.streak} if rewards else None,
    }), 201

@bp.route('/api/transactions')
@login_required
def api_transactions():
    """Return user's transactions filtered by year/month/type, newest first."""
    user = current_user()
    year = request.args.get('year', type=int)
    month = request.args.get('month', type=int)
    t_type = request.args.get('type')  # 'income', 'expense', or None

    q = _apply_year_month_filters(Transaction.query.filter_by(user_id=user.id), year, month)
    if t_type in ['income', 'expense']:
        q = q.filter_by(ttype=t_type)

    txs = q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()
    return jsonify([transaction_json(tx) for tx in txs])

@bp.route('/api/available_years')
@login_required
def api_available_years():
    user = current_user()
    years_rows = db.session.query(func.strftime('%Y', Transaction.created_at).label('y')).filter(Transaction.user_id == user.id).distinct().order_by('y').all()
    years = [int(y[0]) for y in years_rows] or [datetime.now().year]
    return jsonify(years)

@bp.route('/api/summary')
@login_required
def api_summary():
    user = current_user()
    year = request.args.get('year', type=int)
    month = request.args.get('month', type=int)

    q = db.session.query(
        func.sum(case((Transaction.ttype == 'income', Transaction.amount), else_=0)).label('income'),
        func.sum(case((Transaction.ttype == 'expense', Transaction.amount), else_=0)).label('expense')
    ).filter(Transaction.user_id == user.id)
    q = _apply_year_month_filters(q, year, month)
    totals = q.first()
    return jsonify({
        'income': _money(totals.income),
        'expense': _money(totals.expense),
        'balance': _money(totals.income) - _money(totals.expense)
    })

@bp.route('/api/category_breakdown')
@login_required
def api_category_breakdown():
    user = current_user()
    year = request.args.get('year', type=int)
    month = request.args.get('month', type=int)

    q = db.session.query(
        Transaction.category,
        func.sum(case((Transaction.ttype == 'expense', Transaction.amount), else_=0)).label('amount')
    ).filter(Transaction.user_id == user.id)
    q = _apply_year_month_filters(q, year, month)
    rows = q.group_by(Transaction.category).all()
    items = [{'category': r[0], 'amount': _money(r[1])} for r in rows if (r[1] or 0) > 0]
    return jsonify(sorted(items, key=lambda i: i['amount'], reverse=True))

@bp.route('/api/monthly_trend')
@login_required
def api_monthly_trend():
    """Return monthly income/expense for a given year. Fill 0 for months with no transactions."""
    user = current_user()
    year = request.args.get('year', type=int) or datetime.now().year

    rows = db.session.query(
        func.strftime('%m', Transaction.created_at).label('m'),
        func.sum(case((Transaction.ttype == 'income', Transaction.amount), else_=0)).label('income'),
        func.sum(case((Transaction.ttype == 'expense', Transaction.amount), else_=0)).label('expense')
    ).filter(Transaction.user_id == user.id, func.strftime('%Y', Transaction.created_at) == f'{year:04d}').group_by('m').order_by('m').all()

    monthly = {str(m).zfill(2): {'income': 0, 'expense': 0} for m in range(1, 13)}
    for r in rows:
        monthly[r[0]] = {'income': _money(r[1]), 'expense': _money(r[2])}

    return jsonify([{'month': f'{year}-{m}', 'income': monthly[m]['income'], 'expense': monthly[m]['expense']} for m in sorted(monthly.keys())])

# ---------------------- Routes: Rewards ----------------------
@bp.route('/api/rewards')
@login_required
def api_rewards():
    return jsonify(rewards_json(current_user().id))

# ---------------------- Routes: Vaults ----------------------
@bp.route('/api/vaults')
@login_required
def api_vaults():
    include_broken = request.args.get('include_broken', type=int) == 1
    vaults = LedgerRepository(db.session).list_vaults(current_user().id, include_broken=include_broken)
    return jsonify([vault_json(v) for v in vaults])

@bp.route('/api/vaults', methods=['POST'])
@login_required
def api_create_vault():
    data = payload()
    vault = ledger().create_vault(
        current_user().id,
        data.get('goal_name'),
        data.get('target_amount'),
        data.get('daily_save_amount'),
        emoji=data.get('emoji') or '🎯',
    )
    return jsonify({'success': True, 'message': 'Goal Vault created! 🎉', 'vault': vault_json(vault)}), 201

@bp.route('/api/vaults/<int:vault_id>/save', methods=['POST'])
@login_required
def api_save_to_vault(vault_id):
    vault, wallet, bonus = ledger().save_to_vault(current_user().id, vault_id, payload().get('amount'))
    message = f'Saved to {vault.goal_name}! Streak: {vault.streak_days} days 🔥'
    if bonus:
        message += f' +{bonus} bonus points!'
    return jsonify({'success': True, 'message': message, 'vault': vault_json(vault),
                    'wallet_balance': _money(wallet), 'bonus_points': bonus})

@bp.route('/api/vaults/<int:vault_id>/break', methods=['POST'])
@login_required
def api_break_vault(vault_id):
    vault, wallet, refunded = ledger().break_vault(current_user().id, vault_id)
    return jsonify({'success': True, 'message': f'Vault broken 💔 {_money(refunded):g} PP returned to wallet.',
                    'vault': vault_json(vault), 'wallet_balance': _money(wallet), 'refunded': _money(refunded)})

# ---------------------- Routes: Savings Goals ----------------------
@bp.route('/api/goals')
@login_required
def api_goals():
    include_completed = request.args.get('include_completed', type=int) == 1
    goals = LedgerRepository(db.session).list_goals(current_user().id, include_completed=include_completed)
    return jsonify([goal_json(g) for g in goals])

@bp.route('/api/goals', methods=['POST'])
@login_required
def api_create_goal():
    data = payload()
    goal = ledger().create_goal(current_user().id, data.get('title'), data.get('target_amount'),
                                data.get('deadline'), data.get('emoji') or '🎯')
    return jsonify({'success': True, 'message': 'Goal added successfully! 🎯', 'goal': goal_json(goal)}), 201

@bp.route('/api/goals/<int:goal_id>/add', methods=['POST'])
@login_required
def api_add_to_goal(goal_id):
    goal = ledger().add_to_goal(current_user().id, goal_id, payload().get('amount'))
    return jsonify({'success': True, 'goal': goal_json(goal)})

@bp.route('/api/goals/<int:goal_id>', methods=['DELETE'])
@login_required
def api_delete_goal(goal_id):
    ledger().delete_goal(current_user().id, goal_id)
    return jsonify({'success': True, 'message': 'Goal deleted.'})

# ---------------------- Routes: Subscriptions ----------------------
@bp.route('/api/subscriptions')
@login_required
def api_subscriptions():
    subs = LedgerRepository(db.session).list_subscriptions(current_user().id)
    return jsonify([{'id': s.id, 'name': s.name, 'cost': _money(s.cost), 'renewal_date': s.renewal_date.isoformat()} for s in subs])

@bp.route('/api/subscriptions', methods=['POST'])
@login_required
def api_add_subscription():
    data = payload()
    sub = ledger().add_subscription(current_user().id, data.get('name'), data.get('cost'), data.get('renewal_date'))
    return jsonify({'success': True, 'message': f'{sub.name} subscription tracked successfully.', 'id': sub.id}), 201

# ---------------------- Routes: Insights ----------------------
@bp.route('/api/insights')
@login_required
def api_insights():
    user = current_user()
    streak = rewards_json(user.id)['streak']
    return jsonify({
        'insights': generate_insights(user.id),
        'category_breakdown': [[c, v] for c, v in category_breakdown(user.id, limit=5)],
        'spending_alert': spending_alert(user.id),
        'upcoming_subscriptions': upcoming_subscriptions(user.id, window_days=current_app.config['SUBSCRIPTION_ALERT_DAYS']),
        'next_month_expense_prediction': predict_next_month_expense(user.id),
        'advice_context': advice_context(user.id, streak),
    })

# ---------------------- Export CSV ----------------------
@bp.route('/export.csv')
@login_required
def export_csv():
    import csv, io
    user = current_user()
    transactions = Transaction.query.filter_by(user_id=user.id).order_by(Transaction.created_at.desc()).all()
    si = io.StringIO()
    writer = csv.writer(si)
    writer.writerow(['created_at', 'amount', 'type', 'category', 'description'])
    for t in transactions:
        writer.writerow([t.created_at.isoformat(), t.amount, t.ttype, t.category, t.description or ''])
    output = si.getvalue().encode('utf-8')
    return (output, 200, {'Content-Type': 'text/csv; charset=utf-8', 'Content-Disposition': 'attachment; filename=transactions.csv'})


# ---------------------- Run App ----------------------
if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)
