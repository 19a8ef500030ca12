"""
HURE Core - SQLAlchemy Models Package

This package contains all database models for the payroll engine.
"""

from hurecore.models.base import BaseModel, TimestampMixin
from hurecore.models.statutory import StatutoryRuleSetRecord
from hurecore.models.payroll import PayMethod, PeriodState, PayrollPeriod, PayrollEntry

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "StatutoryRuleSetRecord",
    "PayMethod",
    "PeriodState",
    "PayrollPeriod",
    "PayrollEntry",
]
