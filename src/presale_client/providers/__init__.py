from .bases import WalletProvider
from .local import LocalWalletProvider

__all__ = ["WalletProvider", "LocalWalletProvider"]
