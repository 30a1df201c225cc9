"""
Per-run import state.

An ImportSession lives for exactly one import run. It carries the
phone → contact-id cache and the "last resolved contact" pointer that the
receiver fallback relies on, plus the run's counters. It is passed
explicitly to every resolver and writer call and discarded afterwards.
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Set


@dataclass
class ImportStats:
    """Counters accumulated over one import run."""

    total_lines: int = 0
    processed_records: int = 0
    created_contacts: int = 0
    created_messages: int = 0
    duplicates_skipped: int = 0
    errors: int = 0
    parse_errors: int = 0
    skipped_lines: int = 0

    @property
    def success_rate(self) -> float:
        """(processed - errors) / processed, or 0.0 when nothing was processed."""
        if self.processed_records == 0:
            return 0.0
        return (self.processed_records - self.errors) / self.processed_records

    def to_dict(self) -> Dict[str, float]:
        data: Dict[str, float] = dict(asdict(self))
        data["success_rate"] = round(self.success_rate, 4)
        return data

    def report_lines(self) -> List[str]:
        """Render the final statistics block, one line per counter."""
        return [
            f"Total lines processed: {self.total_lines:,}",
            f"Records processed: {self.processed_records:,}",
            f"Contacts created: {self.created_contacts:,}",
            f"Messages created: {self.created_messages:,}",
            f"Duplicates skipped: {self.duplicates_skipped:,}",
            f"Errors: {self.errors:,}",
            f"Skipped lines: {self.skipped_lines:,}",
            f"Success rate: {self.success_rate * 100:.1f}%",
        ]


@dataclass
class ImportSession:
    """Mutable context for a single import run."""

    contact_cache: Dict[str, int] = field(default_factory=dict)
    last_contact_id: Optional[int] = None
    stats: ImportStats = field(default_factory=ImportStats)
    # Contacts known to already carry a name; saves a name-backfill UPDATE
    named_contact_ids: Set[int] = field(default_factory=set)

    def remember(self, phone: str, contact_id: int) -> None:
        """Cache a resolution and make it the fallback contact."""
        self.contact_cache[phone] = contact_id
        self.last_contact_id = contact_id

    def cached(self, phone: str) -> Optional[int]:
        return self.contact_cache.get(phone)
