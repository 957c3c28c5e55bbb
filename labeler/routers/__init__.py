"""
API Routers
FastAPI route handlers
"""

from labeler.routers import analytics, customers, transactions

__all__ = ["analytics", "customers", "transactions"]
