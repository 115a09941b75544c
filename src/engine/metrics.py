from typing import Any, Dict, Sequence

import numpy as np

from .models import CLOSE, Trade


def compute_metrics(
    trades: Sequence[Trade],
    initial_balance: float,
    final_balance: float,
) -> Dict[str, Any]:
    closes = [t for t in trades if t.action == CLOSE]

    # round trips are counted from CLOSE events, never len(trades) / 2
    total_trades = len(closes)
    wins = [t.pnl for t in closes if t.pnl > 0]
    losses = [t.pnl for t in closes if t.pnl < 0]

    win_rate = (len(wins) / total_trades * 100.0) if total_trades else 0.0
    total_return = (final_balance - initial_balance) / initial_balance * 100.0

    return {
        "initial_balance": initial_balance,
        "final_balance": final_balance,
        "total_return": total_return,
        "total_trades": total_trades,
        "winning_trades": len(wins),
        "losing_trades": len(losses),
        "win_rate": win_rate,
        "max_drawdown": _max_drawdown([t.balance for t in trades]),
        "total_pnl": sum(t.pnl for t in closes),
        "total_fees": sum(t.fee for t in closes),
    }


def _max_drawdown(values: Sequence[float]) -> float:
    """
    Worst peak-to-trough decline in percent. The running peak starts at
    the first recorded balance; an empty ledger has no drawdown.
    """
    if not values:
        return 0.0

    balances = np.asarray(values, dtype=float)
    peaks = np.maximum.accumulate(balances)
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdowns = np.where(peaks > 0, (peaks - balances) / peaks * 100.0, 0.0)
    return max(0.0, float(drawdowns.max()))
