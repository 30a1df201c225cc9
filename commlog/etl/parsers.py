"""
Record parsers, one per record type.

All parsers share the reassembler's coarse header match and the field
extractors; each only adds the rules specific to its type:

    SMS / Instant  direction from the explicit token, else FROM when a phone
                   was found, else UNKNOWN; content from start line + body
    Call           same direction rules; content is always "Call"
    Calendar       no direction or parties; 12-hour time on the start line

A parser returns None when the record matched the coarse grammar but not
its type's detailed grammar (impossible date or time, a calendar entry
without a clock time or with a direction token). The caller logs and
counts the failure.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, List, Literal, Optional
import logging

from commlog.etl.extractors import build_content, extract_body, extract_party
from commlog.etl.reassembler import RawRecord

logger = logging.getLogger(__name__)

MessageType = Literal["SMS", "CALL", "INSTANT", "CALENDAR"]
Direction = Literal["FROM", "TO", "UNKNOWN"]

# "3:30 PM - Team meeting", "11:05am Dentist"
CALENDAR_TIME_PATTERN = re.compile(
    r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<period>[AP]M)\b\s*(?:-\s*)?(?P<description>.*)$",
    re.IGNORECASE,
)


@dataclass
class ParsedMessage:
    """A record turned into message fields, before contact resolution."""

    message_type: MessageType
    direction: Direction
    timestamp: datetime
    content: Optional[str]
    raw_lines: List[str] = field(default_factory=list)
    record_id: Optional[int] = None
    sender_number: Optional[str] = None
    sender_name: Optional[str] = None
    receiver_number: Optional[str] = None
    receiver_name: Optional[str] = None
    attachment: Optional[str] = None
    location: Optional[str] = None

    @property
    def counterpart_number(self) -> Optional[str]:
        """The phone number on the record, whichever side it belongs to."""
        return self.sender_number or self.receiver_number

    @property
    def raw_line(self) -> str:
        return "\n".join(self.raw_lines)


def parse_date(value: str) -> date:
    """
    Parse a DD/MM/YYYY date token.

    Raises:
        ValueError: If the date does not exist (e.g. 31/02/2014).
    """
    day, month, year = value.split("/")
    return date(int(year), int(month), int(day))


def parse_clock_time(hour: str, minute: str, period: str) -> time:
    """
    Convert a 12-hour clock reading to a time.

    Raises:
        ValueError: For hours outside 1-12 or minutes outside 0-59.
    """
    hour_12 = int(hour)
    if not 1 <= hour_12 <= 12:
        raise ValueError(f"Invalid 12-hour clock hour: {hour}")
    hour_24 = hour_12 % 12
    if period.upper() == "PM":
        hour_24 += 12
    return time(hour_24, int(minute))


def resolve_direction(direction_token: Optional[str], phone: Optional[str]) -> Direction:
    """
    Decide a message's direction.

    Explicit From/To wins; otherwise a record naming a phone number is
    treated as incoming.
    """
    if direction_token == "From":
        return "FROM"
    if direction_token == "To":
        return "TO"
    if phone:
        return "FROM"
    return "UNKNOWN"


class RecordParser:
    """Base class for per-type record parsers."""

    record_type: MessageType
    type_token: str
    default_content: Optional[str] = None

    def parse(self, record: RawRecord) -> Optional[ParsedMessage]:
        """
        Parse a reassembled record.

        Returns:
            ParsedMessage, or None if the record fails this type's grammar.
        """
        try:
            return self._parse(record)
        except ValueError as e:
            logger.debug(f"{self.type_token} record at line {record.line_number} rejected: {e}")
            return None

    def _parse(self, record: RawRecord) -> Optional[ParsedMessage]:
        raise NotImplementedError


class ConversationParser(RecordParser):
    """Shared rules for records exchanged with a counterpart phone number."""

    def content_for(self, content_start: str, fragments: List[str]) -> Optional[str]:
        return build_content([content_start, *fragments], default=self.default_content)

    def _parse(self, record: RawRecord) -> Optional[ParsedMessage]:
        header = record.header
        day = parse_date(header.date)
        party = extract_party(header.rest)
        body = extract_body(record.continuation_lines)

        timestamp = datetime.combine(day, body.time_of_day or time())
        direction = resolve_direction(header.direction_token, party.phone)

        parsed = ParsedMessage(
            message_type=self.record_type,
            direction=direction,
            timestamp=timestamp,
            content=self.content_for(party.content_start, body.fragments),
            raw_lines=list(record.lines),
            record_id=header.record_id,
        )
        if direction == "FROM":
            parsed.sender_number = party.phone
            parsed.sender_name = party.name
        elif direction == "TO":
            parsed.receiver_number = party.phone
            parsed.receiver_name = party.name
        return parsed


class SmsParser(ConversationParser):
    record_type = "SMS"
    type_token = "SMS"
    default_content = "SMS message"


class InstantParser(ConversationParser):
    record_type = "INSTANT"
    type_token = "Instant"
    default_content = "Instant message"


class CallParser(ConversationParser):
    """Call logs carry no text; content is fixed."""

    record_type = "CALL"
    type_token = "Call Log"
    default_content = "Call"

    def content_for(self, content_start: str, fragments: List[str]) -> Optional[str]:
        return self.default_content


class CalendarParser(RecordParser):
    """Calendar entries: no parties, time-of-day on the start line."""

    record_type = "CALENDAR"
    type_token = "Calendar"
    default_content = "Calendar event"

    def _parse(self, record: RawRecord) -> Optional[ParsedMessage]:
        header = record.header
        if header.direction_token is not None:
            raise ValueError("calendar entries carry no direction")

        day = parse_date(header.date)
        match = CALENDAR_TIME_PATTERN.match(header.rest.strip())
        if not match:
            raise ValueError("calendar entry has no H:MM AM/PM time")
        time_of_day = parse_clock_time(
            match.group("hour"), match.group("minute"), match.group("period")
        )
        description = match.group("description").strip()

        fragments = [description, *(line.strip() for line in record.continuation_lines)]
        return ParsedMessage(
            message_type=self.record_type,
            direction="UNKNOWN",
            timestamp=datetime.combine(day, time_of_day),
            content=build_content(fragments, default=self.default_content),
            raw_lines=list(record.lines),
            record_id=header.record_id,
        )


PARSERS: Dict[str, RecordParser] = {
    parser.type_token: parser
    for parser in (SmsParser(), InstantParser(), CallParser(), CalendarParser())
}


def get_parser(type_token: str) -> Optional[RecordParser]:
    """Look up the parser registered for a record-type token."""
    return PARSERS.get(type_token)


def parse_record(record: RawRecord) -> Optional[ParsedMessage]:
    """
    Dispatch a reassembled record to its type's parser.

    Returns:
        ParsedMessage, or None if no parser accepts the record.
    """
    parser = get_parser(record.header.type_token)
    if parser is None:
        return None
    return parser.parse(record)
