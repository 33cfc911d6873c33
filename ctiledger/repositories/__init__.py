# Repository layer - ledger state access with Pydantic responses

from .base import BaseRepository
from .ledger_state import LedgerState, SqlLedgerState
from .points_repository import PointsRepository, TransactionRepository
from .document_repository import CtiRepository, ModelRepository
from .comment_repository import CommentRepository
from .incentive_repository import IncentiveRepository
from .nonce_repository import NonceRepository
from .statistics_repository import StatisticsRepository

__all__ = [
    "BaseRepository",
    "LedgerState",
    "SqlLedgerState",
    "PointsRepository",
    "TransactionRepository",
    "CtiRepository",
    "ModelRepository",
    "CommentRepository",
    "IncentiveRepository",
    "NonceRepository",
    "StatisticsRepository",
]
