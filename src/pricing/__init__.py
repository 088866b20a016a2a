from .amounts import Amount
from .venues import Direction, QuoteError, QuoteResult, Token, Venue, VenueKind

__all__ = [
    "Amount",
    "Direction",
    "QuoteError",
    "QuoteResult",
    "Token",
    "Venue",
    "VenueKind",
]
