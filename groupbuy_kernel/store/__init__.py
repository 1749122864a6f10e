"""Record store contract and its implementations."""

from groupbuy_kernel.store.contract import Filter, Page, Record, RecordStore, Sort
from groupbuy_kernel.store.memory_store import MemoryRecordStore
from groupbuy_kernel.store.sql_store import SqlRecordStore

__all__ = [
    "Filter",
    "Page",
    "Record",
    "RecordStore",
    "Sort",
    "MemoryRecordStore",
    "SqlRecordStore",
]
