"""Learning loop for confirmed transactions and imported history."""

from smartpaste.learning.batch import BatchLearner
from smartpaste.learning.loop import LearningLoop
from smartpaste.learning.models import (
    BatchLearningResult,
    ConfirmedTransaction,
    ImportedTransaction,
    LearningOutcome,
)

__all__ = [
    "LearningLoop",
    "BatchLearner",
    "ConfirmedTransaction",
    "ImportedTransaction",
    "LearningOutcome",
    "BatchLearningResult",
]
