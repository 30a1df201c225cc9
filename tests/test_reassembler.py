"""
Tests for record reassembly.

Covers the record-start grammar, the idle/accumulating state machine,
and the line counters it maintains.
"""

from commlog.etl.reassembler import is_record_start, match_record_start, reassemble_records
from commlog.etl.session import ImportStats


class TestMatchRecordStart:
    """Tests for the record-start grammar."""

    def test_sms_with_party(self):
        header = match_record_start("43 SMS From 05/06/2014 From: +9607777472 Ahmed")
        assert header is not None
        assert header.record_id == 43
        assert header.type_token == "SMS"
        assert header.direction_token == "From"
        assert header.date == "05/06/2014"
        assert header.rest == "From: +9607777472 Ahmed"

    def test_call_log_two_word_type(self):
        header = match_record_start("3 Call Log To 05/06/2014 To: 7771234")
        assert header.type_token == "Call Log"
        assert header.direction_token == "To"

    def test_calendar_without_direction(self):
        header = match_record_start("5 Calendar 07/06/2014 3:30 PM - Team meeting")
        assert header.type_token == "Calendar"
        assert header.direction_token is None
        assert header.rest == "3:30 PM - Team meeting"

    def test_record_id_optional(self):
        header = match_record_start("SMS To 05/06/2014")
        assert header.record_id is None
        assert header.rest == ""

    def test_continuation_line_is_not_a_start(self):
        assert match_record_start("05:07:40(UTC+0) Hello there") is None
        assert not is_record_start("see you soon")

    def test_unknown_type_is_not_a_start(self):
        assert not is_record_start("7 Email From 05/06/2014")

    def test_date_is_not_validated_here(self):
        """Impossible dates still match; parsers reject them."""
        assert match_record_start("6 SMS From 31/02/2014").date == "31/02/2014"


class TestReassembleRecords:
    """Tests for reassemble_records."""

    def test_groups_continuation_lines(self):
        lines = [
            "1 SMS From 05/06/2014 From: 7771234",
            "05:07:40(UTC+0) Are you coming to the",
            "meeting tomorrow?",
            "2 SMS To 05/06/2014",
            "05:09:00(UTC+0) Yes",
        ]
        records = list(reassemble_records(lines))
        assert len(records) == 2
        assert records[0].continuation_lines == [
            "05:07:40(UTC+0) Are you coming to the",
            "meeting tomorrow?",
        ]
        assert records[1].start_line == "2 SMS To 05/06/2014"

    def test_line_numbers_are_one_based(self):
        lines = ["header", "1 SMS From 05/06/2014", "10:00:00(UTC+0) x"]
        (record,) = reassemble_records(lines)
        assert record.line_number == 2

    def test_blank_lines_do_not_split_records(self):
        lines = ["1 SMS From 05/06/2014", "", "10:00:00(UTC+0) hi", "   ", "there"]
        (record,) = reassemble_records(lines)
        assert record.raw_text == "1 SMS From 05/06/2014\n10:00:00(UTC+0) hi\nthere"

    def test_strips_line_terminators(self):
        lines = ["1 SMS From 05/06/2014\r\n", "10:00:00(UTC+0) hi\n"]
        (record,) = reassemble_records(lines)
        assert record.lines == ["1 SMS From 05/06/2014", "10:00:00(UTC+0) hi"]

    def test_counts_lines(self):
        stats = ImportStats()
        lines = ["noise", "1 SMS From 05/06/2014", "", "10:00:00(UTC+0) hi"]
        list(reassemble_records(lines, stats))
        assert stats.total_lines == 4
        assert stats.skipped_lines == 2

    def test_sample_export(self, sample_log_text):
        stats = ImportStats()
        records = list(reassemble_records(sample_log_text.splitlines(), stats))
        assert [r.header.record_id for r in records] == [1, 2, 3, 4, 5, 6]
        assert stats.total_lines == 15
        assert stats.skipped_lines == 2

    def test_empty_input(self):
        assert list(reassemble_records([])) == []

    def test_lazy(self):
        """Records are yielded before the input is exhausted."""

        def lines():
            yield "1 SMS From 05/06/2014"
            yield "2 SMS From 05/06/2014"
            raise AssertionError("read too far")

        first = next(iter(reassemble_records(lines())))
        assert first.header.record_id == 1
