"""
Field extraction from reassembled records.

Pulls the counterpart phone number, display name, message fragments and
time-of-day out of a record's free text. Extraction is purely textual;
deciding what the fields mean for a given record type is the parsers' job.

Start line (text after the date token):
    [content prefix] From:|To: <phone> [display name ...]

Continuation lines:
    HH:MM:SS(UTC+0) [content ...]   (first occurrence sets the time)
    <wrapped content>
"""

import re
from dataclasses import dataclass, field
from datetime import time
from typing import Iterable, List, Optional

# "From: +9607777472 Ahmed Hassan" / "To: 7771234"
PARTY_PATTERN = re.compile(r"(?P<marker>From|To):\s*(?P<phone>\S+)(?:\s+(?P<name>.*))?")

# "05:07:40(UTC+0)"
TIME_TOKEN_PATTERN = re.compile(r"(?P<hh>\d{2}):(?P<mm>\d{2}):(?P<ss>\d{2})\(UTC\+0\)")


@dataclass
class PartyFields:
    """Counterpart details found on a record-start line."""

    phone: Optional[str] = None
    name: Optional[str] = None
    marker: Optional[str] = None  # 'From' or 'To' when a marker was found
    content_start: str = ""


@dataclass
class BodyFields:
    """Time-of-day and content fragments found on continuation lines."""

    time_of_day: Optional[time] = None
    fragments: List[str] = field(default_factory=list)


def extract_party(text: str) -> PartyFields:
    """
    Extract phone number, display name and leading content from start-line text.

    The first From:/To: marker wins. Everything after the phone token is the
    display name; text before the marker is the first content fragment.

    Args:
        text: Start-line text following the date token.

    Returns:
        PartyFields. Without a marker, all text is content.

    Examples:
        >>> extract_party("From: +9607777472 Ahmed").name
        'Ahmed'
        >>> extract_party("see you soon").content_start
        'see you soon'
    """
    if not text:
        return PartyFields()

    match = PARTY_PATTERN.search(text)
    if not match:
        return PartyFields(content_start=text.strip())

    name = (match.group("name") or "").strip()
    return PartyFields(
        phone=match.group("phone"),
        name=name or None,
        marker=match.group("marker"),
        content_start=text[: match.start()].strip(),
    )


def parse_time_token(match: "re.Match[str]") -> time:
    """
    Build a time from a TIME_TOKEN_PATTERN match.

    Raises:
        ValueError: If the token holds an impossible time (e.g. 25:00:00).
    """
    return time(int(match.group("hh")), int(match.group("mm")), int(match.group("ss")))


def extract_body(lines: Iterable[str]) -> BodyFields:
    """
    Scan continuation lines for the time marker and content fragments.

    The first line carrying a time token supplies the time-of-day; the rest
    of that line becomes a fragment. Every other line is a fragment as-is.

    Args:
        lines: Continuation lines of one record.

    Returns:
        BodyFields with time_of_day (None if no token) and trimmed fragments.

    Raises:
        ValueError: If the first time token is not a valid time.
    """
    body = BodyFields()
    time_found = False

    for line in lines:
        if not time_found:
            match = TIME_TOKEN_PATTERN.search(line)
            if match:
                body.time_of_day = parse_time_token(match)
                time_found = True
                remainder = build_content(
                    [line[: match.start()].strip(), line[match.end():].strip()]
                )
                if remainder:
                    body.fragments.append(remainder)
                continue

        trimmed = line.strip()
        if trimmed:
            body.fragments.append(trimmed)

    return body


def build_content(fragments: Iterable[Optional[str]], default: Optional[str] = None) -> Optional[str]:
    """
    Join content fragments with single spaces, falling back to a default.

    Examples:
        >>> build_content(["", "Hello", "there"])
        'Hello there'
        >>> build_content([], default="SMS message")
        'SMS message'
    """
    content = " ".join(fragment for fragment in fragments if fragment)
    return content or default
