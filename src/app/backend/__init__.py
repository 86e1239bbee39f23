"""
Backend REST client.

백엔드 구현은 범위 밖. HTTP 엔드포인트로만 소비한다.
"""

from .base import BackendError
from .client import KibutzAPIClient

__all__ = [
    "BackendError",
    "KibutzAPIClient",
]
