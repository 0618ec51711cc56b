"""
Shared async helpers: retry policy and request pacing.
"""

from .retry import RetryPolicy, RetryExhausted
from .pacing import BoundedPool, jitter

__all__ = [
    "RetryPolicy",
    "RetryExhausted",
    "BoundedPool",
    "jitter",
]
