from .rpc_client import JsonRpcClient
from .webhook import EmailCaptureClient, is_valid_email

__all__ = ["JsonRpcClient", "EmailCaptureClient", "is_valid_email"]
