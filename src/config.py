import importlib
import os
import uuid
from dataclasses import dataclass, field
from typing import Optional

from pricing.size_refiner import RefinerConfig
from pricing.venues import Token, Venue, VenueKind
from strategy.estimators import RiskConfig
from strategy.fees import AggregatorSlippage, FeeStructure
from strategy.signal_gate import SignalConfig

_ENV_LOADED = False


class ConfigurationError(RuntimeError):
    """A required setting is missing or unusable."""


def _load_env() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    try:
        dotenv = importlib.import_module("dotenv")
    except Exception as exc:  # pragma: no cover
        raise ConfigurationError(
            "python-dotenv is required (pip install python-dotenv)"
        ) from exc
    dotenv.load_dotenv()
    _ENV_LOADED = True


def get_env(
    name: str, default: str | None = None, required: bool = False
) -> str | None:
    _load_env()
    value = os.environ.get(name, default)
    if required and (value is None or value == ""):
        raise ConfigurationError(f"{name} env var is required")
    return value


def _csv(raw: str | None) -> list[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def _flag(name: str, default: str) -> bool:
    return (get_env(name, default) or "").strip().lower() in ("1", "true", "yes")


def parse_trade_sizes(raw: str | None) -> list[float]:
    sizes = []
    for part in _csv(raw):
        try:
            value = float(part)
        except ValueError as exc:
            raise ConfigurationError(f"bad trade size {part!r}") from exc
        if value <= 0:
            raise ConfigurationError(f"trade size must be positive: {part!r}")
        sizes.append(value)
    if not sizes:
        raise ConfigurationError("TRADE_SIZES is empty")
    return sizes


def parse_venue_gas(raw: str | None) -> dict[str, float]:
    """``"odos=0.05,quickswap=0.01"`` -> ``{"odos": 0.05, "quickswap": 0.01}``."""
    costs: dict[str, float] = {}
    for part in _csv(raw):
        venue_id, sep, value = part.partition("=")
        if not sep:
            raise ConfigurationError(f"bad VENUE_GAS_COSTS entry {part!r}")
        try:
            costs[venue_id.strip()] = float(value)
        except ValueError as exc:
            raise ConfigurationError(f"bad gas cost in {part!r}") from exc
    return costs


# ── Chain scope presets ──────────────────────────────────────────

UNISWAP_URL = (
    "https://app.uniswap.org/swap?chain={chain}"
    "&inputCurrency={input}&outputCurrency={output}"
)
ODOS_URL = "https://app.odos.xyz/?chain={chain_id}&tokenIn={input}&tokenOut={output}"
SUSHI_URL = "https://www.sushi.com/swap?chainId={chain_id}&token0={input}&token1={output}"
UNISWAP_V3_QUOTER_V2 = "0x61fFE014bA17989E743c5F6cB21bF9697530B21e"

SCOPE_PRESETS: dict[str, dict] = {
    "polygon": {
        "chain_id": 137,
        "chain_slug": "polygon",
        "reference": Token("USDC", "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", 6),
        "assets": [
            Token("LINK", "0x53E0bca35eC356BD5ddDFebbD1Fc0fD03FaBad39", 18),
            Token("WMATIC", "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270", 18),
            Token("AAVE", "0xD6DF932A45C0f255f85145f286eA0b292B21C90B", 18),
        ],
        "venues": [
            Venue(
                "uniswap_v3",
                VenueKind.V3_QUOTER,
                "Uniswap V3",
                UNISWAP_V3_QUOTER_V2,
                UNISWAP_URL,
            ),
            Venue(
                "quickswap",
                VenueKind.V2_ROUTER,
                "QuickSwap",
                "0xa5E0829CaCEd8fFDD4De3c43696c57F7D7A678ff",
                "https://quickswap.exchange/#/swap?inputCurrency={input}"
                "&outputCurrency={output}",
            ),
            Venue(
                "sushiswap",
                VenueKind.V2_ROUTER,
                "SushiSwap",
                "0x1b02dA8Cb0d097eB8D57A175b88c7D8b47997506",
                SUSHI_URL,
            ),
            Venue("odos", VenueKind.AGGREGATOR, "Odos", None, ODOS_URL),
        ],
    },
    "arbitrum": {
        "chain_id": 42161,
        "chain_slug": "arbitrum",
        "reference": Token("USDC", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", 6),
        "assets": [
            Token("LINK", "0xf97f4df75117a78c1A5a0DBb814Af92458539FB4", 18),
            Token("ARB", "0x912CE59144191C1204E64559FE8253a0e49E6548", 18),
            Token("WETH", "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", 18),
        ],
        "venues": [
            Venue(
                "uniswap_v3",
                VenueKind.V3_QUOTER,
                "Uniswap V3",
                UNISWAP_V3_QUOTER_V2,
                UNISWAP_URL,
            ),
            Venue(
                "sushiswap",
                VenueKind.V2_ROUTER,
                "SushiSwap",
                "0x1b02dA8Cb0d097eB8D57A175b88c7D8b47997506",
                SUSHI_URL,
            ),
            Venue(
                "camelot",
                VenueKind.V2_ROUTER,
                "Camelot",
                "0xc873fEcbd354f5A56E00E710B90EF4201db2448d",
                "https://app.camelot.exchange/?token1={input}&token2={output}",
            ),
            Venue("odos", VenueKind.AGGREGATOR, "Odos", None, ODOS_URL),
        ],
    },
}


@dataclass
class ScopeConfig:
    """One chain: its reference currency, watched assets and venues."""

    name: str
    chain_id: int
    chain_slug: str
    rpc_url: Optional[str]
    reference: Token
    assets: list[Token]
    venues: list[Venue]

    def swap_link(self, venue: Venue, token_in: Token, token_out: Token) -> Optional[str]:
        if not venue.swap_url:
            return None
        return venue.swap_url.format(
            input=token_in.address,
            output=token_out.address,
            chain=self.chain_slug,
            chain_id=self.chain_id,
        )

    @classmethod
    def from_env(
        cls,
        name: str,
        use_aggregators: bool = True,
        asset_filter: Optional[list[str]] = None,
    ) -> "ScopeConfig":
        preset = SCOPE_PRESETS.get(name)
        if preset is None:
            raise ConfigurationError(
                f"unknown scope {name!r} (known: {', '.join(sorted(SCOPE_PRESETS))})"
            )
        prefix = name.upper()
        rpc_url = get_env(f"{prefix}_RPC_URL") or get_env("RPC_URL")

        venues = list(preset["venues"])
        wanted = _csv(get_env(f"{prefix}_VENUES"))
        if wanted:
            unknown = set(wanted) - {v.id for v in venues}
            if unknown:
                raise ConfigurationError(
                    f"{prefix}_VENUES has unknown venues: {sorted(unknown)}"
                )
            venues = [v for v in venues if v.id in wanted]
        if not use_aggregators:
            venues = [v for v in venues if not v.is_aggregator]
        if len(venues) < 2:
            raise ConfigurationError(f"scope {name} needs at least two venues")
        if not rpc_url and any(not v.is_aggregator for v in venues):
            raise ConfigurationError(f"{prefix}_RPC_URL (or RPC_URL) env var is required")

        assets = list(preset["assets"])
        if asset_filter:
            wanted_assets = {a.upper() for a in asset_filter}
            assets = [a for a in assets if a.symbol.upper() in wanted_assets]

        return cls(
            name=name,
            chain_id=preset["chain_id"],
            chain_slug=preset["chain_slug"],
            rpc_url=rpc_url,
            reference=preset["reference"],
            assets=assets,
            venues=venues,
        )


@dataclass
class TelegramConfig:
    token: str
    chat_ids: list[str]
    timeout_seconds: float = 15.0

    @classmethod
    def from_env(cls) -> "TelegramConfig":
        token = get_env("TELEGRAM_BOT_TOKEN", required=True)
        chat_ids = _csv(get_env("TELEGRAM_CHAT_ID", required=True))
        if not chat_ids:
            raise ConfigurationError("TELEGRAM_CHAT_ID env var is required")
        return cls(
            token=token,
            chat_ids=chat_ids,
            timeout_seconds=float(get_env("TELEGRAM_TIMEOUT_SEC", "15")),
        )


@dataclass
class Settings:
    scopes: list[ScopeConfig]
    trade_sizes: list[float]
    telegram: TelegramConfig
    signal: SignalConfig = field(default_factory=SignalConfig)
    fees: FeeStructure = field(default_factory=FeeStructure)
    refiner: RefinerConfig = field(default_factory=RefinerConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    quote_timeout_seconds: float = 10.0
    state_path: str = "state.json"
    send_demo_on_manual: bool = False
    manual_run: bool = False
    run_id: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        _load_env()
        telegram = TelegramConfig.from_env()
        use_aggregators = _flag("USE_AGGREGATORS", "1")
        asset_filter = _csv(get_env("ASSETS"))
        scopes = [
            ScopeConfig.from_env(name, use_aggregators, asset_filter)
            for name in _csv(get_env("SCOPES", "polygon"))
        ]
        if not scopes:
            raise ConfigurationError("SCOPES is empty")

        try:
            aggregator_slippage = AggregatorSlippage(
                (get_env("AGGREGATOR_SLIPPAGE", "haircut") or "haircut").lower()
            )
        except ValueError as exc:
            raise ConfigurationError(
                "AGGREGATOR_SLIPPAGE must be 'haircut' or 'gas_only'"
            ) from exc
        fees = FeeStructure(
            buy_slippage_pct=float(get_env("BUY_SLIPPAGE_PCT", "0.3")),
            sell_slippage_pct=float(get_env("SELL_SLIPPAGE_PCT", "0.3")),
            gas_cost_usd=float(get_env("GAS_COST_USD", "0.02")),
            venue_gas_usd=parse_venue_gas(get_env("VENUE_GAS_COSTS")),
            aggregator_slippage=aggregator_slippage,
        )

        return cls(
            scopes=scopes,
            trade_sizes=parse_trade_sizes(get_env("TRADE_SIZES", "100,500,1000")),
            telegram=telegram,
            signal=SignalConfig.from_env(),
            fees=fees,
            refiner=RefinerConfig.from_env(),
            risk=RiskConfig.from_env(),
            quote_timeout_seconds=float(get_env("QUOTE_TIMEOUT_SEC", "10")),
            state_path=get_env("STATE_PATH", "state.json") or "state.json",
            send_demo_on_manual=_flag("SEND_DEMO_ON_MANUAL", "0"),
            manual_run=get_env("GITHUB_EVENT_NAME", "") == "workflow_dispatch",
            run_id=get_env("GITHUB_RUN_ID") or uuid.uuid4().hex,
        )
