"""
Wallet provider implementations.
"""

from .base import BaseWallet
from .local import LocalKeyWallet

__all__ = [
    "BaseWallet",
    "LocalKeyWallet"
]
