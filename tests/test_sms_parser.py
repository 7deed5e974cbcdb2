"""
Tests for SMS response parsers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from smsbridge.exceptions import ATParseError
from smsbridge.parsers import (
    CMGRHeaderParser,
    CommaSeparatedParser,
    decode_timestamp,
    parse_cmgs,
    parse_notification_payload,
    split_prefixed_line,
    strip_cmgr_trailer,
)


class TestNotificationPayload:
    """Test +CMTI payload parsing."""

    @pytest.mark.parametrize("payload,expected", [
        ('"SM",7', 7),
        ('"ME", 12', 12),
        ("3", 3),
        ('"SM","x",250', 250),
    ])
    def test_last_field_is_index(self, payload, expected):
        assert parse_notification_payload(payload) == expected

    @pytest.mark.parametrize("payload", ['"SM",', '"SM",x', ""])
    def test_malformed(self, payload):
        with pytest.raises(ValueError):
            parse_notification_payload(payload)


class TestTimestamp:
    """Test GSM timestamp decoding."""

    def test_negative_offset(self):
        """Test that -28 quarter hours is UTC-07:00."""
        result = decode_timestamp("23/09/23", "21:10:59-28")

        assert result == datetime(2023, 9, 23, 21, 10, 59, tzinfo=timezone(timedelta(hours=-7)))
        assert result.utcoffset() == timedelta(hours=-7)

    def test_positive_offset(self):
        result = decode_timestamp("24/01/02", "08:00:00+22")

        assert result.utcoffset() == timedelta(hours=5, minutes=30)
        assert result.year == 2024

    def test_missing_offset_is_utc(self):
        result = decode_timestamp("24/01/02", "08:00:00")

        assert result.utcoffset() == timedelta(0)

    def test_year_is_twenty_first_century(self):
        assert decode_timestamp("99/12/31", "23:59:59+00").year == 2099

    def test_same_instant_in_utc(self):
        result = decode_timestamp("23/09/23", "21:10:59-28")

        assert result.astimezone(timezone.utc) == datetime(2023, 9, 24, 4, 10, 59, tzinfo=timezone.utc)

    @pytest.mark.parametrize("date_part,time_part", [
        ("2023/09/23", "21:10:59-28"),
        ("23/09/23", "21:10"),
        ("23/13/01", "21:10:59+00"),
        ("23/09/23", "21:10:59+xx"),
        ("23/09/23", "21:10:59+96"),
    ])
    def test_malformed(self, date_part, time_part):
        with pytest.raises(ATParseError):
            decode_timestamp(date_part, time_part)


class TestCMGRHeader:
    """Test +CMGR header parsing."""

    LINE = '+CMGR: "REC UNREAD","+12223334444","","23/09/23,21:10:59-28"'

    def test_split_fields(self):
        fields = CMGRHeaderParser().split_fields(self.LINE)

        assert fields == [
            "+CMGR",
            "REC UNREAD",
            "+12223334444",
            "",
            "23/09/23",
            "21:10:59-28",
        ]

    def test_parse(self):
        header = CMGRHeaderParser().parse([self.LINE])

        assert header.tag == "+CMGR"
        assert header.status == "REC UNREAD"
        assert header.from_number == "+12223334444"
        assert header.received_time.isoformat() == "2023-09-23T21:10:59-07:00"

    def test_unquoted_timestamp(self):
        """Test a timestamp whose comma splits it into two fields."""
        line = '+CMGR: "REC READ","+15550001111",,23/09/23,21:10:59+04'

        header = CMGRHeaderParser().parse([line])

        assert header.status == "REC READ"
        assert header.received_time.utcoffset() == timedelta(hours=1)

    def test_extra_trailing_fields_ignored(self):
        line = self.LINE + ",145,4"

        header = CMGRHeaderParser().parse([line])

        assert header.from_number == "+12223334444"

    def test_alpha_with_comma(self):
        line = '+CMGR: "REC UNREAD","+12223334444","Doe, J","23/09/23,21:10:59-28"'

        assert CMGRHeaderParser().parse([line]).from_number == "+12223334444"

    @pytest.mark.parametrize("line", [
        "OK",
        '+CMGS: "REC UNREAD","+12223334444","","23/09/23,21:10:59-28"',
        '+CMGR: "REC UNREAD","+12223334444"',
        '+CMGR: "REC UNREAD","+12223334444","","23/09/23"',
    ])
    def test_malformed(self, line):
        with pytest.raises(ATParseError):
            CMGRHeaderParser().parse([line])

    def test_empty_response(self):
        with pytest.raises(ATParseError):
            CMGRHeaderParser().parse([])


class TestTrailerAndConfirmation:
    """Test CMGR trailer removal and CMGS parsing."""

    def test_strip_trailer(self):
        assert strip_cmgr_trailer("Hello\r\nworld\r\nOK\r\n") == "Hello\r\nworld"

    def test_strip_trailer_empty_body(self):
        assert strip_cmgr_trailer("\r\nOK\r\n") == ""

    def test_strip_trailer_missing(self):
        with pytest.raises(ATParseError):
            strip_cmgr_trailer("Hello")

    @pytest.mark.parametrize("line,expected", [
        ("+CMGS: 12", 12),
        ("+CMGS:7\r", 7),
        ("+CMGS: 255", 255),
    ])
    def test_parse_cmgs(self, line, expected):
        assert parse_cmgs(line) == expected

    def test_parse_cmgs_malformed(self):
        with pytest.raises(ATParseError):
            parse_cmgs("+CMGS: ")


class TestBaseHelpers:
    """Test generic parsing helpers."""

    def test_split_prefixed_line(self):
        assert split_prefixed_line("+CMTI: \"SM\",1") == ("+CMTI", '"SM",1')

    def test_split_prefixed_line_without_prefix(self):
        with pytest.raises(ATParseError):
            split_prefixed_line("OK")

    def test_comma_separated_quotes(self):
        parser = CommaSeparatedParser()

        assert parser.parse(['"a,b", c,"d"']) == ["a,b", "c", "d"]

    def test_comma_separated_min_parts(self):
        parser = CommaSeparatedParser(min_parts=3)

        with pytest.raises(ATParseError):
            parser.parse(["a,b"])
