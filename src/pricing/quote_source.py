"""
QuoteSource: one ``quote(venue, direction, asset, amount)`` capability over
every venue kind in a chain scope.

Backends are blocking (``eth_call`` / HTTP), so each call runs in the default
executor under a hard timeout: the per-call timeout times the number of
backend calls the venue makes (one per V3 fee tier).  Nothing raised by a
backend escapes: every failure comes back as a ``QuoteResult`` with
``error`` set.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .amounts import Amount
from .chain_client import ChainClient
from .odos_client import OdosClient
from .v2_router import V2RouterQuoter
from .v3_quoter import V3Quoter
from .venues import Direction, QuoteError, QuoteResult, Token, Venue, VenueKind

logger = logging.getLogger(__name__)


class QuoteSource:
    """Quotes legs against ``reference`` for all venues of one scope."""

    def __init__(
        self,
        reference: Token,
        chain_client: Optional[ChainClient],
        odos_client: Optional[OdosClient] = None,
        timeout_seconds: float = 10.0,
        aggregator_slippage_pct: float = 0.3,
    ) -> None:
        self.reference = reference
        self._chain = chain_client
        self._odos = odos_client
        self._timeout = timeout_seconds
        self._aggregator_slippage_pct = aggregator_slippage_pct
        self._v2: dict[str, V2RouterQuoter] = {}
        self._v3: dict[str, V3Quoter] = {}

    # ── backend dispatch ───────────────────────────────────────

    def _require_chain(self, venue: Venue) -> ChainClient:
        if self._chain is None:
            raise QuoteError(f"{venue.id}: no RPC client for on-chain venue")
        if not venue.address:
            raise QuoteError(f"{venue.id}: no contract address configured")
        return self._chain

    def _quote_raw(
        self, venue: Venue, token_in: str, token_out: str, amount_in: int
    ) -> int:
        """Blocking quote; raises ``QuoteError``."""
        if venue.kind is VenueKind.V2_ROUTER:
            router = self._v2.get(venue.id)
            if router is None:
                router = V2RouterQuoter(self._require_chain(venue), venue.address)
                self._v2[venue.id] = router
            return router.quote(token_in, token_out, amount_in)

        if venue.kind is VenueKind.V3_QUOTER:
            quoter = self._v3.get(venue.id)
            if quoter is None:
                quoter = V3Quoter(
                    self._require_chain(venue), venue.address, venue.fee_tiers
                )
                self._v3[venue.id] = quoter
            return quoter.quote(token_in, token_out, amount_in).amount_out

        if venue.kind is VenueKind.AGGREGATOR:
            if self._odos is None:
                raise QuoteError(f"{venue.id}: aggregator client unavailable")
            quote = self._odos.quote(
                token_in,
                token_out,
                amount_in,
                slippage_percent=self._aggregator_slippage_pct,
            )
            return quote.amount_out

        raise QuoteError(f"unsupported venue kind: {venue.kind}")

    def _budget(self, venue: Venue) -> float:
        """Wait limit for one leg: the per-call timeout times the calls it makes."""
        if venue.kind is VenueKind.V3_QUOTER:
            calls = max(len(venue.fee_tiers), 1)
        elif venue.kind is VenueKind.AGGREGATOR:
            calls = 2  # primary path plus one versioned fallback
        else:
            calls = 1
        return self._timeout * calls

    # ── public API ─────────────────────────────────────────────

    async def quote(
        self, venue: Venue, direction: Direction, asset: Token, amount_in: Amount
    ) -> QuoteResult:
        """Quote one leg.  Never raises."""
        if direction is Direction.TO_ASSET:
            token_in, token_out = self.reference, asset
        else:
            token_in, token_out = asset, self.reference

        if amount_in.decimals != token_in.decimals:
            return QuoteResult.failure(
                venue.id, direction, amount_in, "input amount has wrong decimals"
            )
        if amount_in.raw <= 0:
            return QuoteResult.failure(
                venue.id, direction, amount_in, "non-positive input amount"
            )

        loop = asyncio.get_running_loop()
        budget = self._budget(venue)
        try:
            raw_out = await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    self._quote_raw,
                    venue,
                    token_in.address,
                    token_out.address,
                    amount_in.raw,
                ),
                timeout=budget,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "%s %s %s quote timed out after %.1fs",
                venue.id,
                direction.value,
                asset.symbol,
                budget,
            )
            return QuoteResult.failure(venue.id, direction, amount_in, "timeout")
        except QuoteError as exc:
            logger.debug("%s %s %s: %s", venue.id, direction.value, asset.symbol, exc)
            return QuoteResult.failure(venue.id, direction, amount_in, str(exc))
        except Exception as exc:  # noqa: BLE001 - one leg never aborts the tick
            logger.warning(
                "%s %s %s unexpected quote error: %s",
                venue.id,
                direction.value,
                asset.symbol,
                exc,
            )
            return QuoteResult.failure(venue.id, direction, amount_in, repr(exc))

        amount_out = Amount(
            raw=int(raw_out), decimals=token_out.decimals, symbol=token_out.symbol
        )
        return QuoteResult(venue.id, direction, amount_in, amount_out=amount_out)
