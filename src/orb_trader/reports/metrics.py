"""Daily statistics over closed trades: win rate, average and largest win/loss."""
from __future__ import annotations

from orb_trader.models import DailyStats, Trade


def compute_daily_stats(trades: list[Trade], active_positions: int = 0) -> DailyStats:
    """Summarize the day's closed trades on net P&L.

    ``win_rate`` is a percentage. Break-even trades count as losses.
    """
    if not trades:
        return DailyStats(active_positions=active_positions)

    pnls = [t.net_pnl for t in trades]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p <= 0]

    return DailyStats(
        total_pnl=sum(pnls),
        active_positions=active_positions,
        win_rate=len(wins) / len(pnls) * 100,
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
        largest_win=max(wins, default=0.0),
        largest_loss=min(losses, default=0.0),
    )


def format_daily_stats(stats: DailyStats, charges: float = 0.0) -> str:
    """Pretty-print the daily summary."""
    lines = [
        "=" * 50,
        "          ORB SESSION SUMMARY",
        "=" * 50,
        f"  Total Trades:      {stats.total_trades}",
        f"  Winning Trades:    {stats.winning_trades}",
        f"  Losing Trades:     {stats.losing_trades}",
        f"  Win Rate:          {stats.win_rate:.1f}%",
        f"  Open Positions:    {stats.active_positions}",
        "-" * 50,
        f"  Total Charges:     Rs {charges:,.2f}",
        f"  Net P&L:           Rs {stats.total_pnl:,.2f}",
        "-" * 50,
        f"  Avg Win:           Rs {stats.avg_win:,.2f}",
        f"  Avg Loss:          Rs {stats.avg_loss:,.2f}",
        f"  Largest Win:       Rs {stats.largest_win:,.2f}",
        f"  Largest Loss:      Rs {stats.largest_loss:,.2f}",
        "=" * 50,
    ]
    return "\n".join(lines)
