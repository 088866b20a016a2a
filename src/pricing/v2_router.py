"""
Constant-product (Uniswap V2 style) router quotes.

Asks the router's ``getAmountsOut`` for a single-hop path, so pool fees are
applied exactly as the router would apply them on-chain.
"""

from __future__ import annotations

import logging

from eth_abi import decode
from eth_abi import encode as abi_encode
from eth_utils import to_checksum_address
from eth_utils.crypto import keccak

from .chain_client import ChainClient
from .venues import QuoteError

logger = logging.getLogger(__name__)

GET_AMOUNTS_OUT_SELECTOR = keccak(text="getAmountsOut(uint256,address[])")[:4]


class V2RouterQuoter:
    """Quotes one router contract through ``eth_call``."""

    def __init__(self, chain_client: ChainClient, router_address: str) -> None:
        self._client = chain_client
        self._router = to_checksum_address(router_address)

    @staticmethod
    def encode_call(token_in: str, token_out: str, amount_in: int) -> bytes:
        params = abi_encode(
            ["uint256", "address[]"],
            [amount_in, [to_checksum_address(token_in), to_checksum_address(token_out)]],
        )
        return GET_AMOUNTS_OUT_SELECTOR + params

    def quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        """Raw output amount for ``amount_in`` raw units of ``token_in``."""
        if amount_in <= 0:
            raise QuoteError("amount_in must be positive")
        raw = self._client.call(
            self._router, self.encode_call(token_in, token_out, amount_in)
        )
        try:
            (amounts,) = decode(["uint256[]"], raw)
        except Exception as exc:  # noqa: BLE001 - malformed return data
            raise QuoteError(f"bad getAmountsOut response: {raw.hex()!r}") from exc
        if len(amounts) < 2 or int(amounts[-1]) <= 0:
            raise QuoteError("router returned no output")
        out = int(amounts[-1])
        logger.debug(
            "V2 quote %s: %s -> %s in=%d out=%d",
            self._router[:10],
            token_in[:10],
            token_out[:10],
            amount_in,
            out,
        )
        return out
