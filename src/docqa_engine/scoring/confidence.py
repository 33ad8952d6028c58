"""Final confidence scoring: CONF = w_c*coverage + w_s*min(1, avg_similarity)."""

from __future__ import annotations

import numpy as np

from docqa_engine.config.settings import Settings


class ConfidenceScorer:
    def __init__(self, settings: Settings) -> None:
        self.coverage_weight = settings.conf_coverage_weight
        self.similarity_weight = settings.conf_similarity_weight

    def score(self, coverage: float, avg_similarity: float) -> float:
        conf = self.coverage_weight * coverage + self.similarity_weight * min(1.0, avg_similarity)
        return max(0.0, min(1.0, conf))

    @staticmethod
    def mean(values: list[float]) -> float:
        return float(np.mean(values)) if values else 0.0
