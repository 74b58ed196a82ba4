"""
ranking/base.py

Abstract base interface for practice ranking models.
All ranking model implementations must inherit from BaseRankingModel.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ranking.types import PracticeData, RankingResult


class BaseRankingModel(ABC):
    """Abstract base class for practice ranking models.

    Defines the interface that all ranking model implementations
    must follow. No I/O, no logging, and no side effects are permitted
    inside :meth:`compute`.
    """

    @abstractmethod
    def compute(self, practice: PracticeData, specialty: str) -> RankingResult:
        """Compute a ranking result for one practice.

        Args:
            practice: Profile signals for the practice being scored.
            specialty: Target specialty, e.g. "orthodontist" or "orthodontics".

        Returns:
            A RankingResult whose total_score lies in [0, 100].
        """
        raise NotImplementedError("Subclasses must implement compute()")
