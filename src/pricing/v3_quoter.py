"""
Concentrated-liquidity (Uniswap V3 QuoterV2) quotes.

A token pair can have a pool per fee tier.  Each configured tier is tried and
the best output wins; tiers without a pool simply revert and are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eth_abi import decode
from eth_abi import encode as abi_encode
from eth_utils import to_checksum_address
from eth_utils.crypto import keccak

from .chain_client import ChainClient
from .venues import QuoteError

logger = logging.getLogger(__name__)

QUOTE_EXACT_INPUT_SINGLE_SELECTOR = keccak(
    text="quoteExactInputSingle((address,address,uint256,uint24,uint160))"
)[:4]

DEFAULT_FEE_TIERS = (500, 3_000, 10_000)


@dataclass
class V3Quote:
    amount_out: int
    fee_tier: int
    gas_estimate: int = 0


class V3Quoter:
    """Quotes a QuoterV2 contract across several fee tiers."""

    def __init__(
        self,
        chain_client: ChainClient,
        quoter_address: str,
        fee_tiers: tuple[int, ...] = DEFAULT_FEE_TIERS,
    ) -> None:
        self._client = chain_client
        self._quoter = to_checksum_address(quoter_address)
        self._fee_tiers = tuple(fee_tiers)

    @staticmethod
    def encode_call(token_in: str, token_out: str, amount_in: int, fee: int) -> bytes:
        params = abi_encode(
            ["(address,address,uint256,uint24,uint160)"],
            [
                (
                    to_checksum_address(token_in),
                    to_checksum_address(token_out),
                    amount_in,
                    fee,
                    0,  # no sqrtPriceLimit
                )
            ],
        )
        return QUOTE_EXACT_INPUT_SINGLE_SELECTOR + params

    def quote_tier(self, token_in: str, token_out: str, amount_in: int, fee: int) -> V3Quote:
        raw = self._client.call(
            self._quoter, self.encode_call(token_in, token_out, amount_in, fee)
        )
        try:
            amount_out, _, _, gas_estimate = decode(
                ["uint256", "uint160", "uint32", "uint256"], raw
            )
        except Exception as exc:  # noqa: BLE001 - malformed return data
            raise QuoteError(f"bad QuoterV2 response (fee={fee})") from exc
        return V3Quote(
            amount_out=int(amount_out), fee_tier=fee, gas_estimate=int(gas_estimate)
        )

    def quote(self, token_in: str, token_out: str, amount_in: int) -> V3Quote:
        """Best quote over all fee tiers; ``QuoteError`` if none has a pool."""
        if amount_in <= 0:
            raise QuoteError("amount_in must be positive")
        best: V3Quote | None = None
        for fee in self._fee_tiers:
            try:
                candidate = self.quote_tier(token_in, token_out, amount_in, fee)
            except QuoteError as exc:
                logger.debug("V3 fee tier %d unavailable: %s", fee, exc)
                continue
            if candidate.amount_out <= 0:
                continue
            if best is None or candidate.amount_out > best.amount_out:
                best = candidate
        if best is None:
            raise QuoteError(f"no V3 pool for {token_in} -> {token_out}")
        return best
