from .tenancy import Store
from .catalog import Game
from .inventory import Bin, Pack
from .shifts import Shift, ShiftOpening, ShiftClosing
from .reconciliation import Variance, BusinessDay, DayPack
from .ledger import LedgerEvent

__all__ = [
    'Store',
    'Game',
    'Bin', 'Pack',
    'Shift', 'ShiftOpening', 'ShiftClosing',
    'Variance', 'BusinessDay', 'DayPack',
    'LedgerEvent',
]
