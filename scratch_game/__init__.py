"""
Scratch Game Package
Daily scratch-card game: one prize per participant per game day, reconciled
between a local cache and a spreadsheet ledger
"""

__version__ = "1.0.0"

# Export main components
from .kv_store import KeyValueStore, MemoryKeyValueStore, SQLKeyValueStore
from .local_cache import LocalCache
from .models import PlayRecord, today_string
from .prize_catalog import PrizeCatalog
from .reconciliation import Eligibility, ReconciliationEngine
from .record_store import RecordStoreClient
from .scratch_detector import ScratchRevealDetector
from .session import SessionController

__all__ = [
    'KeyValueStore',
    'MemoryKeyValueStore',
    'SQLKeyValueStore',
    'LocalCache',
    'PlayRecord',
    'today_string',
    'PrizeCatalog',
    'Eligibility',
    'ReconciliationEngine',
    'RecordStoreClient',
    'ScratchRevealDetector',
    'SessionController',
]
