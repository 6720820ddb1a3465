"""
Fixture data served to demo users and written by the demo seeding procedure.
"""

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List

from models.auth import DemoAccount
from models.bank_account import BankAccount, Transaction
from models.plan import Plan
from models.profile import ProfileStats, UserProfile

DEMO_USER_ID = "demo_user_123"
SEED_USER_ID = "demo_user"

DEMO_ACCOUNTS: Dict[str, DemoAccount] = {
    "demo@example.com": DemoAccount(
        user_id=DEMO_USER_ID,
        email="demo@example.com",
        password="DemoPassword123",
        given_name="Demo",
        family_name="User",
        confirmed=True,
    ),
}

_PLANS: List[Dict[str, Any]] = [
    {
        "id": "demo_plan_1",
        "title": "Japan Trip 2025",
        "description": "Two-week vacation to Tokyo and Kyoto",
        "planType": "trip",
        "targetAmount": 8000,
        "currentAmount": 2400,
        "targetDate": "2025-06-15",
        "monthlyIncome": 5000,
        "monthlySavingsGoal": 800,
        "partnerContribution": 200,
        "isActive": True,
        "createdAt": "2024-01-15T00:00:00Z",
        "milestones": [
            {
                "id": "m1",
                "title": "Flight Booking",
                "targetAmount": 2000,
                "targetDate": "2025-03-01",
                "completed": True,
                "completedAt": "2024-11-15T00:00:00Z",
            },
            {
                "id": "m2",
                "title": "Accommodation",
                "targetAmount": 4000,
                "targetDate": "2025-04-01",
                "completed": False,
            },
            {
                "id": "m3",
                "title": "Activities & Food",
                "targetAmount": 8000,
                "targetDate": "2025-06-01",
                "completed": False,
            },
        ],
        "expenses": [],
    },
    {
        "id": "demo_plan_2",
        "title": "House Down Payment",
        "description": "Saving for our first home",
        "planType": "house",
        "targetAmount": 50000,
        "currentAmount": 18500,
        "targetDate": "2026-12-31",
        "monthlyIncome": 5000,
        "monthlySavingsGoal": 1500,
        "partnerContribution": 1000,
        "isActive": True,
        "createdAt": "2024-01-01T00:00:00Z",
        "milestones": [
            {
                "id": "m4",
                "title": "Emergency Fund",
                "targetAmount": 10000,
                "targetDate": "2025-06-01",
                "completed": True,
                "completedAt": "2024-10-01T00:00:00Z",
            },
            {
                "id": "m5",
                "title": "Half Way Point",
                "targetAmount": 25000,
                "targetDate": "2025-12-01",
                "completed": False,
            },
            {
                "id": "m6",
                "title": "Full Down Payment",
                "targetAmount": 50000,
                "targetDate": "2026-12-31",
                "completed": False,
            },
        ],
        "expenses": [],
    },
    {
        "id": "demo_plan_3",
        "title": "Emergency Fund",
        "description": "6 months of expenses",
        "planType": "emergency",
        "targetAmount": 15000,
        "currentAmount": 15000,
        "targetDate": "2024-12-31",
        "monthlyIncome": 5000,
        "monthlySavingsGoal": 500,
        "partnerContribution": 0,
        "isActive": False,
        "createdAt": "2023-06-01T00:00:00Z",
        "milestones": [],
        "expenses": [],
    },
]

_BANK_ACCOUNTS: List[Dict[str, Any]] = [
    {
        "id": "demo_account_1",
        "institutionName": "Chase Bank",
        "accountName": "Chase Checking",
        "accountType": "depository",
        "accountSubtype": "checking",
        "mask": "0000",
        "balance": {"available": 5420.50, "current": 5420.50, "currency": "USD"},
        "isActive": True,
        "createdAt": "2024-01-01T00:00:00Z",
    },
    {
        "id": "demo_account_2",
        "institutionName": "Chase Bank",
        "accountName": "Chase Savings",
        "accountType": "depository",
        "accountSubtype": "savings",
        "mask": "1111",
        "balance": {"available": 12850.75, "current": 12850.75, "currency": "USD"},
        "isActive": True,
        "createdAt": "2024-01-01T00:00:00Z",
    },
]

_TRANSACTIONS: List[Dict[str, Any]] = [
    {
        "transactionId": "demo_txn_1",
        "amount": -45.67,
        "isoCurrencyCode": "USD",
        "date": "2024-12-10",
        "name": "Starbucks Coffee",
        "category": ["Food and Drink", "Restaurants", "Coffee Shop"],
        "pending": False,
    },
    {
        "transactionId": "demo_txn_2",
        "amount": -1250.00,
        "isoCurrencyCode": "USD",
        "date": "2024-12-09",
        "name": "Monthly Rent Payment",
        "category": ["Payment", "Rent"],
        "pending": False,
    },
    {
        "transactionId": "demo_txn_3",
        "amount": 2500.00,
        "isoCurrencyCode": "USD",
        "date": "2024-12-08",
        "name": "Salary Deposit",
        "category": ["Deposit", "Payroll"],
        "pending": False,
    },
]

INVESTMENTS: Dict[str, Any] = {
    "portfolio": {
        "totalValue": 125847.32,
        "totalGain": 18234.67,
        "totalGainPercent": 16.9,
        "dayChange": 1247.83,
        "dayChangePercent": 1.0,
        "cash": 8450.00,
        "invested": 117397.32,
    },
    "holdings": [
        {
            "symbol": "AAPL",
            "name": "Apple Inc.",
            "shares": 125,
            "price": 148.50,
            "value": 18562.50,
            "dayChange": 2.35,
            "dayChangePercent": 1.61,
            "totalReturn": 3420.50,
            "totalReturnPercent": 22.6,
            "sector": "Technology",
            "allocation": 14.7,
        },
        {
            "symbol": "MSFT",
            "name": "Microsoft Corporation",
            "shares": 45,
            "price": 338.25,
            "value": 15221.25,
            "dayChange": -1.85,
            "dayChangePercent": -0.54,
            "totalReturn": 2890.25,
            "totalReturnPercent": 23.4,
            "sector": "Technology",
            "allocation": 12.1,
        },
        {
            "symbol": "GOOGL",
            "name": "Alphabet Inc.",
            "shares": 95,
            "price": 134.80,
            "value": 12806.00,
            "dayChange": 3.20,
            "dayChangePercent": 2.43,
            "totalReturn": 1950.00,
            "totalReturnPercent": 17.9,
            "sector": "Technology",
            "allocation": 10.2,
        },
    ],
    "performance": {
        "1d": {"return": 1.0, "value": 125847.32},
        "1w": {"return": 2.3, "value": 123000.00},
        "1m": {"return": 4.7, "value": 120200.00},
        "3m": {"return": 8.9, "value": 115600.00},
        "6m": {"return": 12.1, "value": 112280.00},
        "1y": {"return": 16.9, "value": 107612.65},
        "5y": {"return": 89.3, "value": 66500.00},
        "all": {"return": 147.2, "value": 51000.00},
    },
    "allocation": [
        {"name": "US Stocks", "percentage": 59.9, "value": 75420, "color": "#3b82f6"},
        {"name": "International", "percentage": 14.8, "value": 18650, "color": "#10b981"},
        {"name": "Bonds", "percentage": 12.1, "value": 15230, "color": "#f59e0b"},
        {"name": "Cash", "percentage": 6.7, "value": 8450, "color": "#6b7280"},
        {"name": "REITs", "percentage": 4.1, "value": 5097, "color": "#8b5cf6"},
        {"name": "Commodities", "percentage": 2.4, "value": 3000, "color": "#ef4444"},
    ],
    "diversification": {
        "overallScore": 78,
        "geographic": {
            "score": 85,
            "breakdown": {"US": 65, "Europe": 20, "Asia": 12, "Emerging": 3},
        },
        "sector": {
            "score": 78,
            "breakdown": {
                "Technology": 35,
                "Healthcare": 15,
                "Financial": 12,
                "Consumer": 18,
                "Other": 20,
            },
        },
        "marketCap": {
            "score": 72,
            "breakdown": {"Large Cap": 70, "Mid Cap": 20, "Small Cap": 10},
        },
    },
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def demo_account_by_email(email: str) -> DemoAccount | None:
    return DEMO_ACCOUNTS.get(email.strip().lower())


def demo_account_by_user_id(user_id: str) -> DemoAccount | None:
    for account in DEMO_ACCOUNTS.values():
        if account.user_id == user_id:
            return account
    return None


def demo_plans(user_id: str = DEMO_USER_ID) -> List[Plan]:
    """The three demo plans, owned by ``user_id``."""
    now = _now()
    return [
        Plan.model_validate({**copy.deepcopy(plan), "userId": user_id, "updatedAt": now})
        for plan in _PLANS
    ]


def demo_bank_accounts(user_id: str = DEMO_USER_ID) -> List[BankAccount]:
    now = _now()
    return [
        BankAccount.model_validate(
            {**copy.deepcopy(account), "userId": user_id, "updatedAt": now}
        )
        for account in _BANK_ACCOUNTS
    ]


def demo_transactions(account_id: str) -> List[Transaction]:
    return [
        Transaction.model_validate({**transaction, "accountId": account_id})
        for transaction in _TRANSACTIONS
    ]


def demo_profile(user_id: str) -> UserProfile | None:
    """Profile for a built-in demo account, or None for other demo ids."""
    account = demo_account_by_user_id(user_id)
    if account is None:
        return None
    return UserProfile(
        user_id=account.user_id,
        email=account.email,
        given_name=account.given_name,
        family_name=account.family_name,
        plan_count=3,
        subscription_tier="free",
        stats=ProfileStats(
            total_plans=3, completed_plans=1, total_saved=35900, total_target=73000
        ),
        created_at="2024-01-01T00:00:00Z",
        updated_at=_now(),
    )
