"""
Tests for the segment tokenizer and file loading (parser_837.py)

Run: pytest tests/test_parser.py -v
"""

import logging

import pytest

from parser_837 import (
    SAMPLE_837,
    Segment,
    configure_logging,
    detect_delimiters,
    parse_837_file,
    safe_element_access,
    serialize_segments,
    tokenize_segments,
)

ISA_HEADER = ("ISA*00*          *00*          *ZZ*SUBMITTER_ID   *ZZ*RECEIVER_ID    "
              "*210101*1000*^*00501*000000001*0*P*:~")


class TestTokenizeSegments:
    def test_tag_and_elements(self):
        segments = tokenize_segments("ST*837*0001*005010X222A1~")
        assert segments == [Segment("ST", ("837", "0001", "005010X222A1"), "ST*837*0001*005010X222A1")]

    def test_trailing_fragment_discarded(self):
        segments = tokenize_segments("GE*1*1~IEA*1*000000001~")
        assert [s.tag for s in segments] == ["GE", "IEA"]

    def test_blank_fragments_discarded(self):
        segments = tokenize_segments("ST*837*0001~~   ~\n~SE*2*0001~")
        assert [s.tag for s in segments] == ["ST", "SE"]

    def test_empty_and_none_input(self):
        assert tokenize_segments("") == []
        assert tokenize_segments("   \n") == []
        assert tokenize_segments(None) == []

    def test_segment_without_elements(self):
        """A bare tag tokenizes to an empty element sequence, not an error."""
        segments = tokenize_segments("SV1~")
        assert segments[0].tag == "SV1"
        assert segments[0].elements == ()

    def test_empty_elements_preserved_in_position(self):
        segment = tokenize_segments("CLM*CLAIM123*100.00***11:B:1~")[0]
        assert segment.elements == ("CLAIM123", "100.00", "", "", "11:B:1")

    def test_line_breaks_between_segments(self):
        segments = tokenize_segments("ST*837*0001~\r\nBHT*0019*00*1*20210101~\n")
        assert [s.tag for s in segments] == ["ST", "BHT"]
        assert segments[1].elements == ("0019", "00", "1", "20210101")
        assert segments[1].raw == "\r\nBHT*0019*00*1*20210101"

    def test_unknown_tag_still_tokenized(self):
        segments = tokenize_segments("ZZZ*A*B~")
        assert segments[0].tag == "ZZZ"
        assert segments[0].elements == ("A", "B")

    def test_custom_delimiters(self):
        segments = tokenize_segments("ST|837|0001'SE|2|0001'", segment_terminator="'",
                                     element_separator="|")
        assert [s.tag for s in segments] == ["ST", "SE"]
        assert segments[0].elements == ("837", "0001")

    def test_restartable(self):
        assert tokenize_segments(SAMPLE_837) == tokenize_segments(SAMPLE_837)

    def test_segments_are_immutable(self):
        segment = tokenize_segments("ST*837*0001~")[0]
        with pytest.raises(AttributeError):
            segment.tag = "SE"

    def test_sample_document(self):
        segments = tokenize_segments(SAMPLE_837)
        assert len(segments) == 28
        assert segments[0].tag == "ISA"
        assert len(segments[0].elements) == 16
        assert segments[-1].tag == "IEA"
        assert segments[-1].raw == "\nIEA*1*000000001"


class TestSerializeSegments:
    def test_round_trip_single_line(self):
        text = ISA_HEADER + "GS*HC*S*R*20210101*1000*1*X*005010X222A1~ST*837*0001~ZZZ*1~"
        assert serialize_segments(tokenize_segments(text)) == text

    def test_round_trip_line_broken_document(self):
        """Line breaks between segments survive in the raw text."""
        assert serialize_segments(tokenize_segments(SAMPLE_837)) == SAMPLE_837

    def test_round_trip_normalizes_trailing_blank(self):
        text = "ST*837*0001~SE*2*0001"
        assert serialize_segments(tokenize_segments(text)) == text + "~"

    def test_custom_terminator(self):
        segments = tokenize_segments("A*1'B*2'", segment_terminator="'")
        assert serialize_segments(segments, segment_terminator="'") == "A*1'B*2'"


class TestSafeElementAccess:
    def test_in_range(self):
        assert safe_element_access(("a", "b"), 1) == "b"

    def test_out_of_range(self):
        assert safe_element_access(("a",), 3) == ""
        assert safe_element_access((), 0, default=None) is None

    def test_negative_index_is_out_of_range(self):
        assert safe_element_access(("a", "b"), -1) == ""


class TestDetectDelimiters:
    def test_standard_header(self):
        assert detect_delimiters(ISA_HEADER) == ("*", "~")

    def test_alternate_delimiters(self):
        header = ISA_HEADER.replace("*", "|").replace("~", "'")
        assert detect_delimiters(header + "GS|HC'") == ("|", "'")

    def test_leading_whitespace(self):
        assert detect_delimiters("\n  " + ISA_HEADER) == ("*", "~")

    def test_not_isa(self):
        assert detect_delimiters("GS*HC*A*B~") is None

    def test_truncated_header(self):
        assert detect_delimiters(ISA_HEADER[:60]) is None

    def test_empty(self):
        assert detect_delimiters("") is None
        assert detect_delimiters(None) is None


class TestParse837File:
    def test_reads_and_tokenizes(self, tmp_path):
        path = tmp_path / "claim.txt"
        path.write_text(SAMPLE_837, encoding="utf-8")
        parsed = parse_837_file(str(path))
        assert parsed["element_separator"] == "*"
        assert parsed["segment_terminator"] == "~"
        assert parsed["content"] == SAMPLE_837
        assert len(parsed["segments"]) == 28

    def test_detects_alternate_delimiters(self, tmp_path):
        path = tmp_path / "claim.txt"
        path.write_text(ISA_HEADER.replace("*", "|").replace("~", "'") + "ST|837|0001'",
                        encoding="utf-8")
        parsed = parse_837_file(str(path))
        assert parsed["element_separator"] == "|"
        assert [s.tag for s in parsed["segments"]] == ["ISA", "ST"]

    def test_falls_back_to_configured_delimiters(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EDI_ELEMENT_SEPARATOR", "|")
        path = tmp_path / "claim.txt"
        path.write_text("ST|837|0001~", encoding="utf-8")
        parsed = parse_837_file(str(path))
        assert parsed["segments"][0].elements == ("837", "0001")

    def test_detection_disabled(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EDI_AUTO_DETECT_DELIMITERS", "false")
        path = tmp_path / "claim.txt"
        path.write_text(ISA_HEADER.replace("*", "|"), encoding="utf-8")
        parsed = parse_837_file(str(path))
        assert parsed["element_separator"] == "*"
        assert parsed["segments"][0].tag == ISA_HEADER.replace("*", "|")[:-1]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_837_file(str(tmp_path / "missing.txt"))


class TestConfigureLogging:
    def test_file_handler(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        log_file = tmp_path / "validator.log"
        configure_logging(level=logging.DEBUG, log_file=str(log_file))
        try:
            logging.getLogger("validation").info("hello from test")
            for handler in root.handlers:
                handler.flush()
            assert "hello from test" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
