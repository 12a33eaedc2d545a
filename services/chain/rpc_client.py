from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Request

logger = logging.getLogger(__name__)


class RpcClientError(RuntimeError):
    """Transport failure or a JSON-RPC error object from the node."""


class BaseRpcClient:
    """Minimal JSON-RPC 2.0 client for a Base node.

    One instance per process, created by the app factory and closed on
    shutdown. Failures are raised, never retried: callers decide.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_sec: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_sec, connect=3.0),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
        self._ids = itertools.count(1)

    async def call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": next(self._ids)}
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            data: Dict[str, Any] = response.json()
        except httpx.HTTPError as exc:
            logger.warning("rpc_transport_failed method=%s error=%s", method, exc)
            raise RpcClientError(str(exc) or exc.__class__.__name__) from exc
        except ValueError as exc:
            raise RpcClientError("Invalid JSON from RPC endpoint") from exc

        if not isinstance(data, dict):
            logger.warning("rpc_invalid_response method=%s type=%s", method, type(data).__name__)
            raise RpcClientError("Invalid JSON-RPC response")

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RpcClientError(message or "Unknown RPC error")
        return data.get("result")

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Receipt dict, or None when the transaction is unknown or not yet mined."""
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def aclose(self) -> None:
        await self._client.aclose()


def get_rpc_client(request: Request) -> BaseRpcClient:
    return request.app.state.rpc_client
