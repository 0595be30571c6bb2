from .session import WalletSession, DEFAULT_BLOCKLIST_SUFFIXES
from .switcher import ChainSwitcher

__all__ = ["WalletSession", "DEFAULT_BLOCKLIST_SUFFIXES", "ChainSwitcher"]
