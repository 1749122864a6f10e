"""Kernel services: order-level guard and the write-sequence boundary."""

from groupbuy_kernel.services.order_lock import OrderLockRegistry
from groupbuy_kernel.services.write_sequence import WriteSequence, WriteStep

__all__ = ["OrderLockRegistry", "WriteSequence", "WriteStep"]
