"""
Models package for data structures and database entities.

This package contains Pydantic models for procedure inputs, API payloads
and DynamoDB item representations.
"""

from .bank_account import BankAccount, Transaction, TransactionRecord
from .dynamodb import ApiModel, DynamoDBItem
from .plan import Plan, PlanAnalytics, ProgressEntry
from .profile import UserProfile
from .session import SessionUser

__all__ = [
    "ApiModel",
    "DynamoDBItem",
    "BankAccount",
    "Transaction",
    "TransactionRecord",
    "Plan",
    "PlanAnalytics",
    "ProgressEntry",
    "UserProfile",
    "SessionUser",
]
