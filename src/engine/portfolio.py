from typing import List, Optional
from .models import Position, Trade


class PortfolioState:
    """
    Per-run account state: running balance, the single in-flight
    position (None when flat) and the append-only trade ledger.
    """

    def __init__(self, balance: float):
        self.balance: float = balance
        self.position: Optional[Position] = None
        self.trade_log: List[Trade] = []

    @property
    def has_open_position(self) -> bool:
        return self.position is not None
