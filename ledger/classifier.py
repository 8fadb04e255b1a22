# Keyword sets are checked in this order; the first hit wins.
CATEGORY_KEYWORDS = [
    ('Food & Dining', ('food', 'restaurant', 'lunch', 'dinner', 'breakfast')),
    ('Travel', ('uber', 'taxi', 'bus', 'train', 'flight')),
    ('Shopping', ('amazon', 'shopping', 'store', 'mall')),
    ('Subscriptions', ('netflix', 'spotify', 'subscription', 'prime')),
    ('Bills', ('electricity', 'water', 'rent', 'bill', 'utility')),
    ('Income', ('salary', 'income', 'payment', 'received')),
]

DEFAULT_CATEGORY = 'General Expense'
INCOME_CATEGORY = 'Income'


def classify(description: str) -> str:
    lower = (description or '').lower()
    for label, keywords in CATEGORY_KEYWORDS:
        if any(k in lower for k in keywords):
            return label
    return DEFAULT_CATEGORY


def category_for(ttype: str, description: str, category: str | None = None) -> str:
    """Income is always 'Income'; an explicitly picked expense category is kept."""
    if ttype == 'income':
        return INCOME_CATEGORY
    if category and category.strip():
        return category.strip()
    return classify(description)
