"""Service layer for the Smart Retry decision service."""
from smart_retry.services.decision import DecisionService
from smart_retry.services.history_store import HistoryStoreError, TransactionHistoryStore

__all__ = ["DecisionService", "HistoryStoreError", "TransactionHistoryStore"]
