import pandas as pd
from datetime import date, datetime, timedelta
from sklearn.linear_model import LinearRegression
from models import Subscription, Transaction, db

# Note: In Flask app context, use db.session directly.

def _query_user_df(user_id):
    # Build a DataFrame of user's transactions
    rows = db.session.query(Transaction).filter(Transaction.user_id == user_id).all()
    if not rows:
        return pd.DataFrame(columns=['date', 'amount', 'type', 'category'])
    data = [{
        'date': r.created_at,
        'amount': float(r.amount),
        'type': r.ttype,
        'category': r.category
    } for r in rows]
    df = pd.DataFrame(data)
    df['date'] = pd.to_datetime(df['date'])
    return df

def totals(user_id):
    df = _query_user_df(user_id)
    income = float(df[df['type'] == 'income']['amount'].sum())
    expense = float(df[df['type'] == 'expense']['amount'].sum())
    return {'income': income, 'expense': expense, 'balance': income - expense}

def category_breakdown(user_id, limit=None):
    """Expense totals per category, largest first."""
    df = _query_user_df(user_id)
    expenses = df[df['type'] == 'expense']
    if expenses.empty:
        return []
    cat = expenses.groupby('category')['amount'].sum().sort_values(ascending=False)
    if limit:
        cat = cat.head(limit)
    return [(c, float(v)) for c, v in cat.items()]

def predict_next_month_expense(user_id):
    df = _query_user_df(user_id)
    if df.empty:
        return 0.0
    # Create monthly expense totals
    expenses = df[df['type'] == 'expense'].copy()
    if expenses.empty:
        return 0.0
    expenses['ym'] = expenses['date'].dt.to_period('M').astype(str)
    m = expenses.groupby('ym')['amount'].sum().reset_index()
    if len(m) < 2:
        # Not enough data to fit
        return float(m['amount'].iloc[-1]) if len(m) else 0.0
    # Turn months into an integer index
    m['idx'] = range(1, len(m) + 1)
    X = m[['idx']].values
    y = m['amount'].values
    model = LinearRegression().fit(X, y)
    next_idx = m['idx'].max() + 1
    pred = float(model.predict([[next_idx]])[0])
    return max(pred, 0.0)

def spending_alert(user_id, now=None):
    """True when the last 7 days of spending run 25%+ above the older weekly average."""
    now = pd.Timestamp(now or datetime.now())
    df = _query_user_df(user_id)
    expenses = df[df['type'] == 'expense']
    if expenses.empty:
        return False
    cutoff = now - pd.Timedelta(days=7)
    recent = expenses[expenses['date'] >= cutoff]['amount'].sum()
    older = expenses[expenses['date'] < cutoff]
    if older.empty:
        return False
    weeks = max((cutoff - older['date'].min()).days / 7, 1)
    avg_weekly = older['amount'].sum() / weeks
    return bool(recent > avg_weekly * 1.25)

def upcoming_subscriptions(user_id, today=None, window_days=7):
    today = today or date.today()
    subs = db.session.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.renewal_date >= today,
        Subscription.renewal_date <= today + timedelta(days=window_days),
    ).order_by(Subscription.renewal_date).all()
    return [{
        'id': s.id,
        'name': s.name,
        'cost': float(s.cost),
        'renewal_date': s.renewal_date.isoformat(),
        'days_until_renewal': (s.renewal_date - today).days,
    } for s in subs]

def advice_context(user_id, streak):
    """Payload for the coaching endpoint: balance, total expense, streak and top 3 categories."""
    t = totals(user_id)
    return {
        'balance': round(t['balance'], 2),
        'totalExpense': round(t['expense'], 2),
        'streak': streak,
        'topCategories': [[c, round(v, 2)] for c, v in category_breakdown(user_id, limit=3)],
    }

def generate_insights(user_id):
    df = _query_user_df(user_id)
    recs = []
    if df.empty:
        recs.append('Add a few transactions to get personalized savings insights.')
        return recs
    t = totals(user_id)
    if t['balance'] > 0:
        recs.append(f"You saved {t['balance']:.2f} PP this period! 🎉")
    else:
        recs.append(f"You spent {abs(t['balance']):.2f} PP more than you earned.")
    top = category_breakdown(user_id, limit=1)
    if top:
        recs.append(f'Your top spending category is {top[0][0]} ({top[0][1]:.2f} PP).')
    if t['income'] > 0:
        savings_rate = max(t['balance'] / t['income'], 0)
        recs.append(f'Your overall savings rate is {savings_rate*100:.1f}%. Aim for 20%+ as a baseline.')
    else:
        recs.append('Add income entries to compute your savings rate.')
    # Volatility check: if last month higher than prior avg
    expenses = df[df['type'] == 'expense'].copy()
    if not expenses.empty:
        expenses['ym'] = expenses['date'].dt.to_period('M').astype(str)
        monthly = expenses.groupby('ym')['amount'].sum()
        if len(monthly) >= 2:
            last = monthly.iloc[-1]
            prev_avg = monthly.iloc[:-1].mean()
            if last > 1.2 * prev_avg:
                recs.append("Last month's expenses exceeded your previous average by 20%+. Review discretionary categories.")
    pred = predict_next_month_expense(user_id)
    if t['income'] > 0:
        target_save = max(t['income'] * 0.2, 0)
        recs.append(f'Predicted next month expense: {pred:.0f} PP. Set a savings target of at least {target_save:.0f} PP.')
    else:
        recs.append(f'Predicted next month expense: {pred:.0f} PP. Add income to compute a savings target.')
    return recs
