# This project was developed with assistance from AI tools.
"""Persistence interface and its SQLAlchemy implementation."""

from .base import LoanStore
from .sql import SqlLoanStore

__all__ = ["LoanStore", "SqlLoanStore"]
