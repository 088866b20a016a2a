"""Read-only JSON-RPC access for on-chain quoters (no private key needed)."""

from __future__ import annotations

import logging

from eth_utils import to_checksum_address
from web3 import Web3

from .venues import QuoteError

logger = logging.getLogger(__name__)


class ChainClient:
    """Thin ``eth_call`` wrapper around a web3 HTTP provider."""

    def __init__(self, rpc_url: str, timeout_seconds: float = 10.0) -> None:
        self.rpc_url = rpc_url
        self._w3 = Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_seconds})
        )

    def call(self, to: str, data: bytes) -> bytes:
        """Execute ``eth_call`` and return the raw return data."""
        tx = {"to": to_checksum_address(to), "data": "0x" + data.hex()}
        try:
            result = self._w3.eth.call(tx)
        except Exception as exc:  # noqa: BLE001 - reverts, RPC and transport errors
            raise QuoteError(f"eth_call to {to} failed: {exc}") from exc
        return bytes(result)
