from unittest.mock import MagicMock

import pytest
import requests

from pricing.odos_client import OdosClient, build_odos_client
from pricing.venues import QuoteError

USDC = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
LINK = "0x53E0bca35eC356BD5ddDFebbD1Fc0fD03FaBad39"


def _response(status: int, body=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = str(body)
    resp.json.return_value = body
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return resp


def _client(*responses) -> tuple[OdosClient, MagicMock]:
    client = OdosClient(chain_id=137)
    session = MagicMock()
    session.post.side_effect = list(responses)
    client._session = session
    return client, session


def test_quote_parses_response():
    client, session = _client(
        _response(200, {"outAmounts": ["5000000"], "gasEstimate": 210000, "priceImpact": 0.01})
    )
    quote = client.quote(LINK, USDC, 10**18, slippage_percent=0.5)

    assert quote.amount_out == 5_000_000
    assert quote.gas_estimate == 210_000
    assert quote.path == "/sor/quote/v2"
    body = session.post.call_args.kwargs["json"]
    assert body["chainId"] == 137
    assert body["inputTokens"] == [{"tokenAddress": LINK, "amount": str(10**18)}]
    assert body["slippageLimitPercent"] == 0.5
    assert body["disableRFQs"] is True


def test_falls_back_when_path_retired():
    client, session = _client(
        _response(404, {"detail": "gone"}),
        _response(200, {"outAmounts": ["7"]}),
    )
    quote = client.quote(USDC, LINK, 1_000_000)
    assert quote.path == "/sor/quote/v3"
    urls = [c.args[0] for c in session.post.call_args_list]
    assert urls == ["https://api.odos.xyz/sor/quote/v2", "https://api.odos.xyz/sor/quote/v3"]


def test_other_http_errors_do_not_fall_back():
    client, session = _client(_response(500, {"detail": "boom"}))
    with pytest.raises(QuoteError, match="ODOS request failed"):
        client.quote(USDC, LINK, 1_000_000)
    assert session.post.call_count == 1


def test_schema_errors_raise_quote_error():
    client, _ = _client(_response(200, {"unexpected": True}))
    with pytest.raises(QuoteError, match="schema"):
        client.quote(USDC, LINK, 1_000_000)


def test_zero_output_is_an_error():
    client, _ = _client(_response(200, {"outAmounts": ["0"]}))
    with pytest.raises(QuoteError, match="zero output"):
        client.quote(USDC, LINK, 1_000_000)


def test_transport_errors_raise_quote_error():
    client, _ = _client(requests.Timeout("slow"))
    with pytest.raises(QuoteError):
        client.quote(USDC, LINK, 1_000_000)


def test_unsupported_chain_gets_no_client():
    assert build_odos_client(137, 5.0).chain_id == 137
    assert build_odos_client(999_999, 5.0) is None
