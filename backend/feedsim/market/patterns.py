"""Bounded aggregation of observed event shapes."""

from __future__ import annotations

import logging
from typing import Any

from .models import PatternRecord, Quote

logger = logging.getLogger(__name__)

MAX_SAMPLES = 100


def classify_quote(quote: Quote, condition: str) -> dict[str, Any]:
    """Reduce a quote to a pattern sample the learner can aggregate."""
    return {
        "type": f"price_{quote.direction}",
        "symbol": quote.symbol,
        "change_percent": quote.change_percent,
        "spread": quote.spread,
        "condition": condition,
        "timestamp": quote.timestamp,
    }


class PatternLearner:
    """Keeps the last ``MAX_SAMPLES`` samples and a running count per pattern type.

    Purely additive: it never predicts anything. Records are created on first
    sight of a type and live for the rest of the session.
    """

    def __init__(self, max_samples: int = MAX_SAMPLES) -> None:
        self._max_samples = max_samples
        self._records: dict[str, PatternRecord] = {}

    def learn(self, pattern: dict[str, Any]) -> PatternRecord:
        """Fold one sample into its record. ``pattern['type']`` selects the record."""
        key = f"pattern:{pattern.get('type', 'unknown')}"
        record = self._records.get(key)
        if record is None:
            record = PatternRecord(key=key)
            self._records[key] = record
            logger.debug("New pattern type: %s", key)

        record.count += 1
        record.samples.append(pattern)
        if len(record.samples) > self._max_samples:
            record.samples = record.samples[-self._max_samples :]
        return record

    def get(self, key: str) -> PatternRecord | None:
        return self._records.get(key)

    def records(self) -> dict[str, PatternRecord]:
        return dict(self._records)

    def sample_count(self) -> int:
        return sum(len(r.samples) for r in self._records.values())

    def __len__(self) -> int:
        return len(self._records)
