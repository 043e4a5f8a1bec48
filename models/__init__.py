from .card import Card, CardCreate, CardRename, CardFlag, CardRef, CardStatus
from .settings import IntervalSetting, IntervalUnit, SrsSettings
from .review import ReviewHistoryEntry, ReviewScope, SessionMode, SessionStart

__all__ = [
    'Card', 'CardCreate', 'CardRename', 'CardFlag', 'CardRef', 'CardStatus',
    'IntervalSetting', 'IntervalUnit', 'SrsSettings',
    'ReviewHistoryEntry', 'ReviewScope', 'SessionMode', 'SessionStart',
]
