"""
WORDMAP METERING COLLECTOR - The Usage Ledger

Default UsageReporter for the generation orchestrator. Every successful,
non-empty expansion reports its TokenUsage here exactly once.

Architecture:
- UsageRecord: One reported usage, stamped with the time it arrived
- MeteringCollector: Append-only aggregation and query interface

Design Principles:
1. APPEND-ONLY: Records are immutable once reported
2. POLARS-NATIVE: Aggregation uses Polars
3. FIRE AND FORGET: report() never feeds back into the mind map
"""
import msgspec
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
import threading
import polars as pl

from core.schemas import TokenUsage


def now_utc() -> str:
    """Fast UTC timestamp as ISO8601 string."""
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# RECORDS
# =============================================================================

class UsageRecord(msgspec.Struct, kw_only=True, frozen=True):
    """A single metering entry."""
    sequence: int
    reported_at: str
    input_tokens: int = 0
    output_tokens: int = 0
    tokens_charged: float = 0.0
    model: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


# =============================================================================
# COLLECTOR
# =============================================================================

class MeteringCollector:
    """
    Central usage aggregation.

    Usage:
        collector = MeteringCollector()
        editor = MindMapEditor(reporter=collector)
        await editor.generate_nodes(center_id, "synonyms")

        collector.get_summary()["tokens_charged"]   # 0.5
    """

    def __init__(self):
        self._records: List[UsageRecord] = []
        self._lock = threading.Lock()

    def report(self, usage: TokenUsage) -> UsageRecord:
        """Record one expansion's usage."""
        with self._lock:
            record = UsageRecord(
                sequence=len(self._records) + 1,
                reported_at=now_utc(),
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                tokens_charged=usage.tokens_charged,
                model=usage.model,
            )
            self._records.append(record)
            return record

    def get_all_records(self) -> List[UsageRecord]:
        """Get all reported usage, oldest first."""
        with self._lock:
            return list(self._records)

    def to_dataframe(self) -> pl.DataFrame:
        """Convert all records to a Polars DataFrame."""
        records = self.get_all_records()
        if not records:
            return pl.DataFrame()

        return pl.DataFrame([
            {
                "sequence": r.sequence,
                "reported_at": r.reported_at,
                "model": r.model,
                "input_tokens": r.input_tokens,
                "output_tokens": r.output_tokens,
                "total_tokens": r.total_tokens,
                "tokens_charged": r.tokens_charged,
            }
            for r in records
        ])

    def get_summary(self) -> Dict[str, Any]:
        """
        Aggregate statistics over every reported expansion.

        Returns:
            Dictionary with count, token totals and charged units
        """
        df = self.to_dataframe()
        if df.is_empty():
            return {
                "expansions": 0,
                "input_tokens": 0,
                "output_tokens": 0,
                "total_tokens": 0,
                "tokens_charged": 0.0,
                "by_model": [],
            }

        return {
            "expansions": len(df),
            "input_tokens": int(df["input_tokens"].sum()),
            "output_tokens": int(df["output_tokens"].sum()),
            "total_tokens": int(df["total_tokens"].sum()),
            "tokens_charged": float(df["tokens_charged"].sum()),
            "by_model": df.group_by("model").agg(
                pl.len().alias("expansions"),
                pl.col("tokens_charged").sum(),
            ).sort("model", nulls_last=True).to_dicts(),
        }

    def clear(self) -> None:
        """Clear all collected records."""
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

_global_collector: Optional[MeteringCollector] = None


def get_collector() -> MeteringCollector:
    """Get the global metering collector instance."""
    global _global_collector
    if _global_collector is None:
        _global_collector = MeteringCollector()
    return _global_collector


def reset_collector() -> None:
    """Drop the global collector (for testing)."""
    global _global_collector
    _global_collector = None
