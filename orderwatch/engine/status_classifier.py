"""
Status Classifier — Free-Text Order Status Normalization.

Maps the free-text, multi-language status written by tills, kitchens and
delivery apps ("Pendiente", "priority-preparing", "LISTO!", "pagado") onto a
canonical bucket. The vocabulary lives in a synonym table (bucket → set of
normalized synonyms) so new labels can be added without code changes.

Match algorithm:
1. Normalize: lower-case, trim, collapse inner whitespace.
2. Exact: look the text up in the synonym table.
3. Substring fallback, to tolerate punctuation and pluralization noise:
   a. a synonym contained in the text (longest synonym wins);
   b. the text contained in a synonym (text of at least
      MIN_FRAGMENT_LENGTH characters, shortest synonym wins).
   Ties are broken by BUCKET_PRECEDENCE, then alphabetically.
4. Anything else, including the empty string, is UNKNOWN and recorded as a
   classification gap so synonym-table drift can be detected.

Version: status_classifier_v1
"""

import json
import threading
from collections import Counter
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

import structlog

from orderwatch.models.enums import CanonicalStatus

logger = structlog.get_logger()


DEFAULT_SYNONYMS: dict[CanonicalStatus, tuple[str, ...]] = {
    CanonicalStatus.PENDING: (
        "pending",
        "priority-pending",
        "pendiente",
        "nueva",
        "nuevo",
        "new",
        "received",
        "recibido",
    ),
    CanonicalStatus.PREPARING: (
        "preparing",
        "priority-preparing",
        "preparando",
        "en preparación",
        "en preparacion",
        "cocinando",
        "in progress",
        "cooking",
    ),
    CanonicalStatus.READY: (
        "ready",
        "listo",
        "lista",
        "preparado",
        "preparada",
    ),
    CanonicalStatus.COMPLETED: (
        "completed",
        "complete",
        "delivered",
        "entregado",
        "entregada",
        "completado",
        "completada",
        "pagado",
        "pagada",
        "paid",
    ),
    CanonicalStatus.CANCELLED: (
        "cancelled",
        "canceled",
        "cancelado",
        "cancelada",
        "anulado",
        "anulada",
    ),
}

# Earlier buckets win substring ties. Terminal states first so that
# "cancelled while preparing" is not reported as an active order.
BUCKET_PRECEDENCE: tuple[CanonicalStatus, ...] = (
    CanonicalStatus.CANCELLED,
    CanonicalStatus.COMPLETED,
    CanonicalStatus.READY,
    CanonicalStatus.PREPARING,
    CanonicalStatus.PENDING,
)

MIN_FRAGMENT_LENGTH = 3


def normalize_status(raw: Optional[str]) -> str:
    """Lower-case, trim and collapse whitespace. None becomes ""."""
    if raw is None:
        return ""
    return " ".join(str(raw).lower().split())


class StatusClassifier:
    """
    Total, deterministic classifier from raw status text to CanonicalStatus.

    The classifier never raises. Unmatched inputs are counted per raw text
    (see ``gaps()``); the counter is the only mutable state and is guarded
    by a lock so one classifier can be shared across threads.

    Attributes:
        synonyms: Normalized synonym table, bucket → frozenset of synonyms

    Example:
        >>> classifier = StatusClassifier()
        >>> classifier.classify(" PENDIENTE ")
        <CanonicalStatus.PENDING: 'pending'>
        >>> classifier.extend(CanonicalStatus.READY, ["servido"])
    """

    def __init__(
        self,
        synonyms: Optional[Mapping[Union[CanonicalStatus, str], Iterable[str]]] = None,
        include_defaults: bool = True,
    ):
        """
        Initialize the classifier.

        Args:
            synonyms: Extra synonyms per bucket, merged over the defaults
            include_defaults: Start from DEFAULT_SYNONYMS (False for a
                fully custom vocabulary)
        """
        self._lock = threading.Lock()
        self._gaps: Counter = Counter()
        self._table: dict[CanonicalStatus, set[str]] = {
            bucket: set() for bucket in BUCKET_PRECEDENCE
        }

        if include_defaults:
            for bucket, values in DEFAULT_SYNONYMS.items():
                self._add(bucket, values)
        if synonyms:
            for bucket, values in synonyms.items():
                self._add(bucket, values)

        self._rebuild_index()

    @classmethod
    def from_file(cls, path: Union[str, Path], include_defaults: bool = True) -> "StatusClassifier":
        """
        Build a classifier from a JSON synonym file.

        The file maps bucket names to lists of synonyms, for example
        ``{"ready": ["servido"], "cancelled": ["rechazado"]}``.

        Args:
            path: JSON file path
            include_defaults: Merge the file over DEFAULT_SYNONYMS

        Returns:
            Configured StatusClassifier

        Raises:
            ValueError: If the file names an unknown bucket or is malformed
        """
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)

        if not isinstance(data, dict):
            raise ValueError("Synonym file must contain a JSON object")

        logger.info(
            "status_synonyms_loaded",
            path=str(path),
            buckets=sorted(data.keys()),
        )
        return cls(synonyms=data, include_defaults=include_defaults)

    # =========================================================================
    # Synonym table
    # =========================================================================

    def _add(self, bucket: Union[CanonicalStatus, str], values: Iterable[str]) -> None:
        bucket = CanonicalStatus(bucket)
        if bucket == CanonicalStatus.UNKNOWN:
            raise ValueError("Synonyms cannot be registered for the unknown bucket")
        if isinstance(values, str):
            values = [values]
        for value in values:
            normalized = normalize_status(value)
            if normalized:
                self._table[bucket].add(normalized)

    def _rebuild_index(self) -> None:
        exact: dict[str, CanonicalStatus] = {}
        entries: list[tuple[str, CanonicalStatus, int]] = []
        for rank, bucket in enumerate(BUCKET_PRECEDENCE):
            for synonym in sorted(self._table[bucket]):
                # A synonym listed under two buckets resolves to the earlier one
                exact.setdefault(synonym, bucket)
                entries.append((synonym, bucket, rank))

        self._exact = exact
        self._longest_first = sorted(entries, key=lambda e: (-len(e[0]), e[2], e[0]))
        self._shortest_first = sorted(entries, key=lambda e: (len(e[0]), e[2], e[0]))

    def extend(self, bucket: Union[CanonicalStatus, str], synonyms: Iterable[str]) -> None:
        """
        Register additional synonyms for a bucket.

        Args:
            bucket: Canonical bucket (not UNKNOWN)
            synonyms: Raw labels; normalized before storing
        """
        with self._lock:
            self._add(bucket, synonyms)
            self._rebuild_index()
        logger.info("status_synonyms_extended", bucket=CanonicalStatus(bucket).value)

    @property
    def synonyms(self) -> dict[CanonicalStatus, frozenset[str]]:
        """Read-only copy of the synonym table."""
        return {bucket: frozenset(values) for bucket, values in self._table.items()}

    def synonyms_for(self, buckets: Iterable[Union[CanonicalStatus, str]]) -> frozenset[str]:
        """All normalized synonyms of the given buckets."""
        result: set[str] = set()
        for bucket in buckets:
            bucket = CanonicalStatus(bucket)
            result.update(self._table.get(bucket, ()))
        return frozenset(result)

    # =========================================================================
    # Classification
    # =========================================================================

    def classify(self, raw: Optional[str]) -> CanonicalStatus:
        """
        Classify a raw status.

        Args:
            raw: Status text exactly as stored (None is treated as "")

        Returns:
            The canonical bucket; UNKNOWN when nothing matches
        """
        text = normalize_status(raw)

        if text:
            bucket = self._exact.get(text)
            if bucket is not None:
                return bucket

            for synonym, bucket, _ in self._longest_first:
                if synonym in text:
                    return bucket

            if len(text) >= MIN_FRAGMENT_LENGTH:
                for synonym, bucket, _ in self._shortest_first:
                    if text in synonym:
                        return bucket

        self._record_gap(text)
        return CanonicalStatus.UNKNOWN

    def _record_gap(self, text: str) -> None:
        with self._lock:
            self._gaps[text] += 1
            occurrences = self._gaps[text]
        if occurrences == 1:
            logger.debug("status_classification_gap", raw_status=text)

    # =========================================================================
    # Gap accounting
    # =========================================================================

    @property
    def gap_count(self) -> int:
        """
        UNKNOWN classifications since the last reset.

        Counts classify() calls, so re-classifying the same order on every
        refresh or request adds to it. See distinct_gap_count for drift.
        """
        with self._lock:
            return sum(self._gaps.values())

    @property
    def distinct_gap_count(self) -> int:
        """Distinct unmatched raw statuses since the last reset."""
        with self._lock:
            return len(self._gaps)

    def gaps(self) -> dict[str, int]:
        """Unmatched normalized status text → classify() occurrences."""
        with self._lock:
            return dict(self._gaps)

    def reset_gaps(self) -> None:
        """Clear the gap counter."""
        with self._lock:
            self._gaps.clear()
