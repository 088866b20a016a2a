"""
Run the arbitrage signal bot from a source checkout.

Usage:
  python scripts/arb_bot.py             # one tick
  python scripts/arb_bot.py --loop 60   # tick every 60s
"""

# flake8: noqa

import sys
from pathlib import Path

# Ensure src/ is on sys.path so bare imports work from scripts/
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from bot import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
