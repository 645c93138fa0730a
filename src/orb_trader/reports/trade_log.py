"""CSV export for closed trades."""
from __future__ import annotations

import csv
from pathlib import Path

from orb_trader.models import Trade

HEADERS = [
    "trade_id",
    "date",
    "symbol",
    "side",
    "quantity",
    "entry_time",
    "exit_time",
    "entry_price",
    "exit_price",
    "exit_reason",
    "gross_pnl",
    "charges",
    "net_pnl",
    "duration_minutes",
]


def export_trades_csv(
    trades: list[Trade], output_path: str | Path, append: bool = False
) -> Path:
    """Write trades to a CSV file.

    Args:
        trades: Closed trades, in the order they closed.
        output_path: File path for the CSV output.
        append: Add rows to an existing journal instead of overwriting it.

    Returns:
        Path to the CSV file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    write_header = not (append and output_path.exists())
    with open(output_path, "a" if append else "w", newline="") as f:
        writer = csv.writer(f)
        if write_header:
            writer.writerow(HEADERS)

        for t in trades:
            writer.writerow([
                t.id,
                t.entry_time.strftime("%Y-%m-%d"),
                t.instrument.symbol,
                t.side.value,
                t.quantity,
                t.entry_time.strftime("%Y-%m-%d %H:%M:%S"),
                t.exit_time.strftime("%Y-%m-%d %H:%M:%S"),
                f"{t.entry_price:.2f}",
                f"{t.exit_price:.2f}",
                t.exit_reason.name,
                f"{t.pnl:.2f}",
                f"{t.charges:.2f}",
                f"{t.net_pnl:.2f}",
                t.duration_minutes,
            ])

    return output_path
