"""
Hoosat REST proxy backend.

Talks to the public HTTP proxy in front of a Hoosat node. Every response is
wrapped in an envelope:

    {"success": true, "data": {...}}
    {"success": false, "error": "message"}
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from htncore.amounts import parse_sompi, parse_u64
from htncore.errors import NodeBackendError
from htncore.models import MempoolEntry, UnspentOutput
from htnwallet.backends.base import NodeBackend

DEFAULT_PROXY_URL = "https://proxy.hoosat.net/api/v1"
DEFAULT_TIMEOUT = 30.0


class RestProxyBackend(NodeBackend):
    """Node backend over the Hoosat REST proxy."""

    def __init__(
        self,
        base_url: str = DEFAULT_PROXY_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _api_call(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an API call and unwrap the response envelope.

        Raises:
            NodeBackendError: the proxy reported failure
            httpx.HTTPError: on connection/timeout/status errors
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        try:
            if method == "GET":
                response = await self.client.get(url, params=params)
            elif method == "POST":
                response = await self.client.post(url, json=data)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")

            response.raise_for_status()
            body = response.json()

        except httpx.HTTPError as e:
            logger.error(f"Proxy API call failed: {endpoint} - {e}")
            raise

        if not isinstance(body, dict) or not body.get("success", False):
            error = body.get("error") if isinstance(body, dict) else body
            raise NodeBackendError(f"Proxy error on {endpoint}: {error}")

        return body.get("data")

    async def get_utxos(self, addresses: list[str]) -> list[UnspentOutput]:
        data = await self._api_call("POST", "address/utxos", data={"addresses": addresses})
        utxos = [UnspentOutput.from_api(item) for item in (data or {}).get("utxos", [])]
        logger.debug(f"Fetched {len(utxos)} UTXO(s) for {len(addresses)} address(es)")
        return utxos

    async def get_balance(self, address: str) -> int:
        data = await self._api_call("GET", f"address/{address}/balance")
        return parse_sompi(data["balance"])

    async def get_virtual_daa_score(self) -> int:
        data = await self._api_call("GET", "blockchain/dag-info")
        return parse_u64(data["virtualDaaScore"], "DAA score")

    async def get_mempool_entries(self) -> list[MempoolEntry]:
        data = await self._api_call("GET", "mempool/entries")
        entries = []
        for item in (data or {}).get("entries", []):
            if item.get("isOrphan"):
                continue
            entries.append(MempoolEntry.from_api(item))
        return entries

    async def submit_transaction(self, transaction: dict[str, Any]) -> str:
        data = await self._api_call(
            "POST", "transaction/submit", data={"transaction": transaction}
        )
        txid = data["transactionId"]
        logger.info(f"Transaction submitted: {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
