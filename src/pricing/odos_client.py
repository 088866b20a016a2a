from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .venues import QuoteError

logger = logging.getLogger(__name__)

# Any address works for pricing; quotes are never assembled into transactions.
PLACEHOLDER_USER = "0x0000000000000000000000000000000000000001"


@dataclass
class OdosQuote:
    """
    Lightweight representation of an ODOS quote response.

    All amounts are raw integer token amounts (respect token decimals).
    """

    chain_id: int
    input_token: str
    output_token: str
    amount_in: int
    amount_out: int
    gas_estimate: int
    price_impact: float
    path: str

    @property
    def effective_price(self) -> float:
        """
        Effective output per unit input (token_out / token_in).
        """
        if self.amount_in == 0:
            return 0.0
        return self.amount_out / float(self.amount_in)


class OdosClient:
    """
    ODOS aggregator quote client.

    Quotes go to ``quote_path`` first; when that path answers with
    ``fallback_status`` the request is repeated once on ``fallback_path``
    (ODOS retires quote API versions this way).
    """

    def __init__(
        self,
        chain_id: int = 137,
        base_url: str | None = None,
        timeout_seconds: float = 10.0,
        quote_path: str = "/sor/quote/v2",
        fallback_path: str | None = "/sor/quote/v3",
        fallback_status: int = 404,
        pool_connections: int = 10,
        pool_maxsize: int = 10,
    ) -> None:
        self._chain_id = chain_id
        self._base_url = base_url or "https://api.odos.xyz"
        self._timeout = timeout_seconds
        self._quote_path = quote_path
        self._fallback_path = fallback_path
        self._fallback_status = fallback_status
        adapter = requests.adapters.HTTPAdapter(
            pool_connections=pool_connections,
            pool_maxsize=pool_maxsize,
        )
        self._session = requests.Session()
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    @property
    def chain_id(self) -> int:
        return self._chain_id

    def _post(self, path: str, json_body: Dict[str, Any]) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            return self._session.post(url, json=json_body, timeout=self._timeout)
        except requests.RequestException as exc:
            raise QuoteError(f"ODOS request failed: {exc}") from exc

    @staticmethod
    def _decode(resp: requests.Response) -> Dict[str, Any]:
        try:
            resp.raise_for_status()
        except requests.RequestException as exc:
            body = ""
            try:
                body = resp.text
            except Exception:  # pragma: no cover
                body = "<unavailable>"
            raise QuoteError(f"ODOS request failed: {exc}  body={body!r}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            raise QuoteError(f"Invalid JSON from ODOS: {resp.text!r}") from exc

    def quote(
        self,
        input_token: str,
        output_token: str,
        amount_in: int,
        slippage_percent: float = 0.3,
        user_address: str = PLACEHOLDER_USER,
    ) -> OdosQuote:
        """
        Request a price quote for a single-input -> single-output swap.

        ``amount_in`` is the raw token amount (respect input token decimals).
        """
        payload: Dict[str, Any] = {
            "chainId": self._chain_id,
            "inputTokens": [
                {
                    "tokenAddress": input_token,
                    "amount": str(amount_in),
                }
            ],
            "outputTokens": [
                {
                    "tokenAddress": output_token,
                    "proportion": 1,
                }
            ],
            "slippageLimitPercent": slippage_percent,
            "userAddr": user_address,
            "referralCode": 0,
            "disableRFQs": True,
            "compact": True,
        }

        path = self._quote_path
        resp = self._post(path, payload)
        if (
            resp.status_code == self._fallback_status
            and self._fallback_path
            and self._fallback_path != path
        ):
            logger.info(
                "ODOS %s answered %d, retrying on %s",
                path,
                resp.status_code,
                self._fallback_path,
            )
            path = self._fallback_path
            resp = self._post(path, payload)
        data = self._decode(resp)

        try:
            out_amount = int(data["outAmounts"][0])
            gas_estimate = int(data.get("gasEstimate", 0) or 0)
            price_impact = float(data.get("priceImpact", 0.0) or 0.0)
        except (KeyError, IndexError, ValueError, TypeError) as exc:
            raise QuoteError(f"Unexpected ODOS response schema: {data}") from exc
        if out_amount <= 0:
            raise QuoteError("ODOS returned zero output")

        quote = OdosQuote(
            chain_id=self._chain_id,
            input_token=input_token,
            output_token=output_token,
            amount_in=amount_in,
            amount_out=out_amount,
            gas_estimate=gas_estimate,
            price_impact=price_impact,
            path=path,
        )
        logger.debug(
            "ODOS quote: in=%s out=%s eff_price=%.6f gas=%d impact=%.4f path=%s",
            amount_in,
            out_amount,
            quote.effective_price,
            gas_estimate,
            price_impact,
            path,
        )
        return quote


def build_odos_client(chain_id: int, timeout_seconds: float) -> Optional[OdosClient]:
    """ODOS only serves chains it supports; anything else gets no client."""
    if chain_id not in SUPPORTED_CHAIN_IDS:
        logger.warning("ODOS does not serve chain %d; aggregator disabled", chain_id)
        return None
    return OdosClient(chain_id=chain_id, timeout_seconds=timeout_seconds)


SUPPORTED_CHAIN_IDS = frozenset({1, 10, 56, 137, 250, 8453, 42161, 43114, 59144})
