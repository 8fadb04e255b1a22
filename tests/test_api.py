from datetime import date, timedelta


def test_requires_login(client):
    resp = client.get('/api/vaults')
    assert resp.status_code == 401
    assert resp.get_json()['success'] is False


def test_register_and_login_errors(client):
    assert client.post('/register', json={'email': 'a@b.c'}).status_code == 400
    client.post('/register', json={'name': 'A', 'email': 'a@b.c', 'password': 'pw'})
    assert client.post('/register', json={'name': 'A', 'email': 'A@b.c', 'password': 'pw'}).status_code == 400
    assert client.post('/login', json={'email': 'a@b.c', 'password': 'nope'}).status_code == 401


def test_add_transactions_and_summary(auth_client):
    resp = auth_client.post('/api/transactions', json={'amount': 3000, 'type': 'income', 'description': 'salary'})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['transaction']['category'] == 'Income'
    assert body['rewards'] == {'points': 10, 'streak': 1}

    resp = auth_client.post('/api/transactions', json={'amount': '45.5', 'type': 'expense',
                                                       'description': 'monthly Netflix charge'})
    assert resp.get_json()['transaction']['category'] == 'Subscriptions'
    auth_client.post('/api/transactions', json={'amount': 20, 'type': 'expense', 'description': 'random stuff'})

    summary = auth_client.get('/api/summary').get_json()
    assert summary == {'income': 3000.0, 'expense': 65.5, 'balance': 2934.5}

    breakdown = auth_client.get('/api/category_breakdown').get_json()
    assert breakdown[0] == {'category': 'Subscriptions', 'amount': 45.5}
    assert [b['category'] for b in breakdown] == ['Subscriptions', 'General Expense']

    txs = auth_client.get('/api/transactions?type=expense').get_json()
    assert len(txs) == 2

    trend = auth_client.get('/api/monthly_trend').get_json()
    assert len(trend) == 12
    assert sum(m['income'] for m in trend) == 3000.0


def test_invalid_transaction(auth_client):
    resp = auth_client.post('/api/transactions', json={'amount': -5, 'type': 'expense', 'description': 'x'})
    assert resp.status_code == 400
    resp = auth_client.post('/api/transactions', json={'amount': 5, 'type': 'gift', 'description': 'x'})
    assert resp.status_code == 400


def test_vault_flow(auth_client):
    auth_client.post('/api/profile/income', json={'monthly_income': 10000})
    auth_client.post('/api/wallet/deposit', json={'amount': 1000})

    too_big = auth_client.post('/api/vaults', json={'goal_name': 'Car', 'target_amount': 2100, 'daily_save_amount': 100})
    assert too_big.status_code == 400
    assert 'too high' in too_big.get_json()['message']

    resp = auth_client.post('/api/vaults', json={'goal_name': 'Laptop', 'target_amount': 2000,
                                                 'daily_save_amount': 100, 'emoji': '💻'})
    assert resp.status_code == 201
    vault_id = resp.get_json()['vault']['id']

    for _ in range(7):
        body = auth_client.post(f'/api/vaults/{vault_id}/save').get_json()
    assert body['vault']['streak_days'] == 7
    assert body['vault']['saved_amount'] == 700.0
    assert body['bonus_points'] == 10
    assert body['wallet_balance'] == 300.0

    rewards = auth_client.get('/api/rewards').get_json()
    assert rewards['points'] == 10
    assert rewards['lifetime_points'] == 10

    body = auth_client.post(f'/api/vaults/{vault_id}/break').get_json()
    assert body['wallet_balance'] == 1000.0
    assert body['vault']['is_broken'] is True
    assert body['vault']['is_locked'] is False
    assert body['vault']['streak_days'] == 7

    again = auth_client.post(f'/api/vaults/{vault_id}/break')
    assert again.status_code == 409
    assert auth_client.get('/api/profile').get_json()['wallet_balance'] == 1000.0
    assert auth_client.get('/api/vaults').get_json() == []
    assert len(auth_client.get('/api/vaults?include_broken=1').get_json()) == 1


def test_vault_save_insufficient_funds(auth_client):
    auth_client.post('/api/profile/income', json={'monthly_income': 5000})
    vault_id = auth_client.post('/api/vaults', json={'goal_name': 'Shoes', 'target_amount': 500,
                                                     'daily_save_amount': 50}).get_json()['vault']['id']
    resp = auth_client.post(f'/api/vaults/{vault_id}/save')
    assert resp.status_code == 409
    assert resp.get_json()['message'] == 'Insufficient balance.'


def test_missing_vault_is_404(auth_client):
    assert auth_client.post('/api/vaults/999/save').status_code == 404


def test_goals_flow(auth_client):
    deadline = (date.today() + timedelta(days=10)).isoformat()
    resp = auth_client.post('/api/goals', json={'title': 'New Phone', 'target_amount': 500, 'deadline': deadline})
    goal = resp.get_json()['goal']
    assert goal['progress'] == 0
    assert goal['daily_savings_needed'] == 50.0

    body = auth_client.post(f"/api/goals/{goal['id']}/add", json={'amount': 500}).get_json()
    assert body['goal']['completed_at'] is not None
    assert body['goal']['progress'] == 100.0
    stamped = body['goal']['completed_at']
    body = auth_client.post(f"/api/goals/{goal['id']}/add", json={'amount': 25}).get_json()
    assert body['goal']['completed_at'] == stamped

    assert auth_client.get('/api/goals').get_json() == []
    assert len(auth_client.get('/api/goals?include_completed=1').get_json()) == 1
    assert auth_client.delete(f"/api/goals/{goal['id']}").status_code == 200
    assert auth_client.get('/api/goals?include_completed=1').get_json() == []


def test_subscriptions_and_insights(auth_client):
    soon = (date.today() + timedelta(days=3)).isoformat()
    later = (date.today() + timedelta(days=30)).isoformat()
    assert auth_client.post('/api/subscriptions', json={'name': 'Spotify', 'cost': 119, 'renewal_date': soon}).status_code == 201
    auth_client.post('/api/subscriptions', json={'name': 'Gym', 'cost': 999, 'renewal_date': later})
    assert auth_client.post('/api/subscriptions', json={'name': 'Gym', 'cost': 10}).status_code == 400
    assert len(auth_client.get('/api/subscriptions').get_json()) == 2

    auth_client.post('/api/transactions', json={'amount': 1000, 'type': 'income', 'description': 'salary'})
    auth_client.post('/api/transactions', json={'amount': 200, 'type': 'expense', 'description': 'dinner out'})

    body = auth_client.get('/api/insights').get_json()
    assert [s['name'] for s in body['upcoming_subscriptions']] == ['Spotify']
    assert body['advice_context'] == {
        'balance': 800.0,
        'totalExpense': 200.0,
        'streak': 1,
        'topCategories': [['Food & Dining', 200.0]],
    }
    assert body['spending_alert'] is False
    assert body['insights'][0].startswith('You saved 800.00 PP')


def test_export_csv(auth_client):
    auth_client.post('/api/transactions', json={'amount': 12, 'type': 'expense', 'description': 'bus ticket'})
    resp = auth_client.get('/export.csv')
    assert resp.status_code == 200
    lines = resp.data.decode('utf-8').strip().splitlines()
    assert lines[0] == 'created_at,amount,type,category,description'
    assert 'Travel' in lines[1]


def test_amounts_are_stored_in_cents(auth_client):
    assert auth_client.post('/api/wallet/deposit', json={'amount': '0.004'}).status_code == 400
    body = auth_client.post('/api/wallet/deposit', json={'amount': '10.129'}).get_json()
    assert body['wallet_balance'] == 10.13
    assert auth_client.get('/api/profile').get_json()['wallet_balance'] == 10.13

    auth_client.post('/api/profile/income', json={'monthly_income': 1000})
    vault_id = auth_client.post('/api/vaults', json={'goal_name': 'Books', 'target_amount': 100,
                                                     'daily_save_amount': 5}).get_json()['vault']['id']
    resp = auth_client.post(f'/api/vaults/{vault_id}/save', json={'amount': '0.004'})
    assert resp.status_code == 400
    body = auth_client.post(f'/api/vaults/{vault_id}/save', json={'amount': '2.555'}).get_json()
    assert body['vault']['saved_amount'] == 2.56
    assert body['vault']['streak_days'] == 1
    assert body['wallet_balance'] == 7.57
    assert auth_client.get('/api/profile').get_json()['wallet_balance'] == 7.57


def test_malformed_bodies_are_rejected(auth_client):
    assert auth_client.post('/api/wallet/deposit', json=[1]).status_code == 400
    assert auth_client.post('/api/wallet/deposit', json='12').status_code == 400
    resp = auth_client.post('/api/transactions', json={'amount': 5, 'type': 5, 'description': 'x'})
    assert resp.status_code == 400
    assert resp.get_json()['success'] is False
    assert auth_client.post('/api/transactions', json={'amount': 5, 'type': 'expense', 'description': 7}).status_code == 400
    assert auth_client.post('/api/transactions', json={'amount': [5], 'type': 'expense', 'description': 'x'}).status_code == 400
    assert auth_client.post('/api/transactions', json={'amount': 5, 'type': 'expense', 'category': 3,
                                                       'description': 'x'}).status_code == 400

    auth_client.post('/api/profile/income', json={'monthly_income': 1000})
    assert auth_client.post('/api/vaults', json={'goal_name': 5, 'target_amount': 100,
                                                 'daily_save_amount': 5}).status_code == 400
    deadline = (date.today() + timedelta(days=10)).isoformat()
    assert auth_client.post('/api/goals', json={'title': [], 'target_amount': 50, 'deadline': deadline}).status_code == 400
    assert auth_client.post('/api/subscriptions', json={'name': 1, 'cost': 5, 'renewal_date': deadline}).status_code == 400
    assert auth_client.get('/api/transactions').get_json() == []


def test_register_rejects_non_text_fields(client):
    assert client.post('/register', json={'name': 'A', 'email': 3, 'password': 'pw'}).status_code == 400
    assert client.post('/register', json={'name': 'A', 'email': 'a@b.c', 'password': 123}).status_code == 400
    assert client.post('/login', json=['a@b.c']).status_code == 400
