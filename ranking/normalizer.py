"""
ranking/normalizer.py

Deterministic normalization utilities for ranking factor inputs.
"""

from __future__ import annotations

import math


class RankingNormalizer:
    """Provides stateless normalization methods for ranking inputs.

    All methods are deterministic and produce bounded float outputs.
    No external dependencies, state, or side effects.
    """

    def normalize_positive(self, value: float, max_expected: float) -> float:
        """Normalize a non-negative value against a cap; result in [0, 1]."""
        if max_expected == 0:
            raise ValueError("max_expected must not be zero.")
        return self.clamp(value / max_expected, 0.0, 1.0)

    def normalize_log(self, value: float, max_expected: float) -> float:
        """Logarithmically normalize a count with diminishing returns.

        Computes ln(value + 1) / ln(max_expected + 1), clamped to [0, 1].
        Negative counts are treated as zero.

        Args:
            value: Non-negative count.
            max_expected: Benchmark ceiling; counts at or above it score 1.0.

        Returns:
            A float in the range [0, 1].

        Raises:
            ValueError: If max_expected is not positive.
        """
        if max_expected <= 0:
            raise ValueError("max_expected must be positive.")
        safe_value = max(0.0, value)
        return self.clamp(math.log(safe_value + 1.0) / math.log(max_expected + 1.0), 0.0, 1.0)

    def clamp(self, value: float, min_value: float, max_value: float) -> float:
        """Clamp a value to the specified [min_value, max_value] range."""
        return max(min_value, min(value, max_value))

    def round_score(self, value: float, places: int = 2) -> float:
        """Round half away from zero to a fixed number of decimal places.

        Python's built-in round() uses banker's rounding; scores are stored
        and displayed with conventional half-up rounding instead.
        """
        factor = 10**places
        if value < 0:
            return -math.floor(-value * factor + 0.5) / factor
        return math.floor(value * factor + 0.5) / factor
