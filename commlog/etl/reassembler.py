"""
Record reassembly for exported communication logs.

The export writes one logical record across several physical lines: a
record-start line carrying the id, type, direction and date, followed by
wrapped continuation lines holding the time marker and message body.

    43 SMS From 05/06/2014 From: +9607777472 Ahmed
    05:07:40(UTC+0) Are you coming to the
    meeting tomorrow?

reassemble_records() is a two-state machine (idle, accumulating) over a
stream of lines. It never looks ahead and never buffers more than the
record being assembled, so arbitrarily large exports are processed in
bounded memory.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional
import logging

from commlog.etl.session import ImportStats

logger = logging.getLogger(__name__)

# Record-type tokens as they appear in the export
RECORD_TYPE_TOKENS = ("SMS", "Call Log", "Calendar", "Instant")

# Coarse grammar shared by all record types:
#   [id] <type> [From|To] DD/MM/YYYY [trailing text]
RECORD_START_PATTERN = re.compile(
    r"^\s*(?:(?P<record_id>\d+)\s+)?"
    r"(?P<type>SMS|Call Log|Calendar|Instant)\s+"
    r"(?:(?P<direction>From|To)\s+)?"
    r"(?P<date>\d{2}/\d{2}/\d{4})"
    r"(?:\s+(?P<rest>.*?))?\s*$"
)


@dataclass
class RecordHeader:
    """Fields of a record-start line matched by the coarse grammar."""

    record_id: Optional[int]
    type_token: str
    direction_token: Optional[str]
    date: str  # DD/MM/YYYY, not yet validated
    rest: str


@dataclass
class RawRecord:
    """One logical record: its start line plus continuation lines."""

    header: RecordHeader
    lines: List[str] = field(default_factory=list)
    line_number: int = 0  # 1-based line number of the start line

    @property
    def start_line(self) -> str:
        return self.lines[0]

    @property
    def continuation_lines(self) -> List[str]:
        return self.lines[1:]

    @property
    def raw_text(self) -> str:
        return "\n".join(self.lines)


def match_record_start(line: str) -> Optional[RecordHeader]:
    """
    Match a line against the record-start grammar.

    Args:
        line: One physical line without its line terminator.

    Returns:
        RecordHeader if the line starts a record, None for continuation lines.

    Examples:
        >>> match_record_start("43 SMS From 05/06/2014 From: +9607777472 Ahmed").type_token
        'SMS'
        >>> match_record_start("05:07:40(UTC+0) Hello") is None
        True
    """
    match = RECORD_START_PATTERN.match(line)
    if not match:
        return None

    record_id = match.group("record_id")
    return RecordHeader(
        record_id=int(record_id) if record_id else None,
        type_token=match.group("type"),
        direction_token=match.group("direction"),
        date=match.group("date"),
        rest=match.group("rest") or "",
    )


def is_record_start(line: str) -> bool:
    """Check whether a line begins a new logical record."""
    return match_record_start(line) is not None


def reassemble_records(
    lines: Iterable[str],
    stats: Optional[ImportStats] = None,
) -> Iterator[RawRecord]:
    """
    Group a stream of physical lines into logical records.

    Empty lines are skipped and counted; they never start or end a record.
    Non-empty lines seen before the first record-start line belong to no
    record and are counted as skipped as well.

    Args:
        lines: Iterable of lines (line terminators are stripped).
        stats: Optional stats object; total_lines and skipped_lines are
               updated as lines are consumed.

    Yields:
        RawRecord for each completed record, in file order.
    """
    current: Optional[RawRecord] = None

    for line_number, line in enumerate(lines, start=1):
        line = line.rstrip("\r\n")
        if stats is not None:
            stats.total_lines += 1

        if not line.strip():
            if stats is not None:
                stats.skipped_lines += 1
            continue

        header = match_record_start(line)
        if header is not None:
            if current is not None:
                yield current
            current = RawRecord(header=header, lines=[line], line_number=line_number)
        elif current is not None:
            current.lines.append(line)
        else:
            logger.debug(f"Line {line_number} precedes any record, skipping")
            if stats is not None:
                stats.skipped_lines += 1

    if current is not None:
        yield current
