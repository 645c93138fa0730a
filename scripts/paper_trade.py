#!/usr/bin/env python3
"""Paper trading convenience script, equivalent to: live_trade.py --paper

Usage:
    python scripts/paper_trade.py [--mock] [--config CONFIG_PATH] [--lots N]
"""
from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

if __name__ == "__main__":
    if "--live" in sys.argv:
        sys.exit("paper_trade.py never places real orders; use live_trade.py --live")
    sys.argv.append("--paper")
    from live_trade import main
    main()
