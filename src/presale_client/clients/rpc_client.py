"""
Direct JSON-RPC Client

Reads that must not depend on the buyer's wallet (purchase history scans and
the aggregate tokens-sold counter) go straight to a chain's RPC endpoint
through this client.
"""

import itertools
import logging
from typing import Any, List, Optional

import httpx

from ..engine.exceptions import RpcError

logger = logging.getLogger(__name__)


class JsonRpcClient(httpx.AsyncClient):
    """
    httpx.AsyncClient with a JSON-RPC 2.0 ``call`` helper.

    One client serves every chain: the endpoint URL is passed per call.

    Usage:
        ```python
        async with JsonRpcClient(timeout=15.0) as rpc:
            logs = await rpc.call("https://mainnet.base.org", "eth_getLogs", [filter_params])
        ```
    """

    def __init__(self, **kwargs):
        """
        Args:
            **kwargs: All standard httpx.AsyncClient arguments (timeout, transport, ...)
        """
        kwargs.setdefault("timeout", 15.0)
        super().__init__(**kwargs)
        self._ids = itertools.count(1)

    async def call(self, url: str, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        POST one JSON-RPC request and return its ``result``.

        Raises:
            RpcError: On transport failure, non-2xx status, malformed body or
                a JSON-RPC error object.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = await self.post(url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            logger.warning("JSON-RPC %s to %s failed: %s", method, url, e)
            raise RpcError(f"{method} request failed: {e}", rpc_method=method) from e
        except ValueError as e:
            raise RpcError(f"{method} returned a non-JSON body", rpc_method=method) from e

        if not isinstance(body, dict):
            raise RpcError(f"{method} returned an unexpected payload", rpc_method=method)

        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise RpcError(f"{method} error: {message}", rpc_method=method, code=code)

        if "result" not in body:
            raise RpcError(f"{method} response has no result", rpc_method=method)
        return body["result"]
