"""
Import and correction pipeline for exported communication logs.

Turns a free-text export mixing SMS, call, instant-message and calendar
records into a normalized store of contacts and messages, and repairs
attribution afterwards.

Architecture Overview:
    export.txt (read-only)        commlog.db (read-write)
    ├── reassembler  (lines → records)
    ├── parsers      (records → ParsedMessage)
    ├── identity     (phone → contact)   ──→  ├── contact
    ├── loaders      (batched writes)    ──→  ├── message
    └── corrections  (post-import fixes) ──→  └── etl_state

Key Design Decisions:
    1. The input is streamed; memory is bounded by the batch size
    2. Contacts are keyed by canonical phone number (+960XXXXXXX)
    3. Per-run state lives in an ImportSession passed explicitly
    4. Attribution repairs run as separate, repeatable passes
"""

from commlog.etl.schema import create_schema, verify_schema, SCHEMA_VERSION
from commlog.etl.normalizers import (
    normalize_phone,
    is_canonical,
    is_same_contact,
    format_phone_for_display,
)
from commlog.etl.reassembler import reassemble_records, RawRecord, RecordHeader
from commlog.etl.extractors import extract_party, extract_body
from commlog.etl.parsers import parse_record, get_parser, ParsedMessage, RecordParser
from commlog.etl.session import ImportSession, ImportStats
from commlog.etl.identity import resolve_contact
from commlog.etl.loaders import BatchWriter, update_etl_state, get_etl_state
from commlog.etl.pipeline import run_import, get_import_status, ImportResult
from commlog.etl.corrections import (
    backfill_receivers,
    reclassify_self_replies,
    merge_duplicate_contacts,
    merge_contacts,
    run_corrections,
    CorrectionResult,
    KeywordReplyClassifier,
    ReplyClassifier,
)
from commlog.etl.validation import validate_store, ValidationResult

__all__ = [
    # Schema
    "create_schema",
    "verify_schema",
    "SCHEMA_VERSION",
    # Normalizers
    "normalize_phone",
    "is_canonical",
    "is_same_contact",
    "format_phone_for_display",
    # Parsing
    "reassemble_records",
    "RawRecord",
    "RecordHeader",
    "extract_party",
    "extract_body",
    "parse_record",
    "get_parser",
    "ParsedMessage",
    "RecordParser",
    # Session
    "ImportSession",
    "ImportStats",
    # Identity and loading
    "resolve_contact",
    "BatchWriter",
    "update_etl_state",
    "get_etl_state",
    # Pipeline
    "run_import",
    "get_import_status",
    "ImportResult",
    # Corrections
    "backfill_receivers",
    "reclassify_self_replies",
    "merge_duplicate_contacts",
    "merge_contacts",
    "run_corrections",
    "CorrectionResult",
    "KeywordReplyClassifier",
    "ReplyClassifier",
    # Validation
    "validate_store",
    "ValidationResult",
]
