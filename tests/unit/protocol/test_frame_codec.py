# tests/unit/protocol/test_frame_codec.py
"""Tests for the Modbus TCP frame codec.

Test Coverage:
- PDU construction, exception flag, size limits
- MBAP encoding (exact bytes)
- Decoding and round trips for every supported function code
- Frame errors: short frames, bad protocol id, length mismatch
- Header parsing used by stream readers
- Debug frame formatting
"""

import pytest

from mbtcp.protocol.errors import FrameError
from mbtcp.protocol.frame import (
    ADU,
    MAX_PDU_SIZE,
    PDU,
    decode,
    decode_adu,
    encode,
    encode_adu,
    format_frame,
    parse_header,
)
from mbtcp.protocol.function_codes import FunctionCode


# ================================================================
# PDU TESTS
# ================================================================
class TestPDU:
    """Test the PDU value type."""

    def test_to_bytes_prefixes_function_code(self):
        """Test that serialisation puts the function code first.

        WHY: The function code is always the first PDU byte on the wire.
        """
        pdu = PDU(FunctionCode.READ_HOLDING_REGISTERS, b"\x00\x00\x00\x0a")

        assert pdu.to_bytes() == b"\x03\x00\x00\x00\x0a"

    def test_from_bytes_splits_function_code(self):
        """Test parsing a PDU from raw bytes.

        WHY: Inverse of to_bytes.
        """
        pdu = PDU.from_bytes(b"\x10\x00\x01")

        assert pdu.function_code == 0x10
        assert pdu.data == b"\x00\x01"

    def test_from_bytes_empty_raises(self):
        """Test that an empty PDU is rejected.

        WHY: A PDU without a function code is not a PDU.
        """
        with pytest.raises(FrameError):
            PDU.from_bytes(b"")

    def test_exception_flag(self):
        """Test exception PDU detection and code extraction.

        WHY: Clients branch on the high bit of the function code.
        """
        pdu = PDU(0x83, b"\x02")

        assert pdu.is_exception is True
        assert pdu.exception_code == 2

    def test_normal_pdu_has_no_exception_code(self):
        """Test that normal PDUs report no exception code.

        WHY: exception_code must only be meaningful for exception PDUs.
        """
        pdu = PDU(0x03, b"\x02\x00\x01")

        assert pdu.is_exception is False
        assert pdu.exception_code is None

    def test_oversized_pdu_raises(self):
        """Test that a PDU over 253 bytes cannot be serialised.

        WHY: The MBAP length field bounds the PDU size.
        """
        pdu = PDU(0x10, bytes(MAX_PDU_SIZE))

        with pytest.raises(ValueError):
            pdu.to_bytes()

    def test_pdus_compare_by_value(self):
        """Test PDU equality.

        WHY: Round trip properties compare decoded PDUs with originals.
        """
        assert PDU(3, b"\x01") == PDU(3, b"\x01")
        assert PDU(3, b"\x01") != PDU(4, b"\x01")


# ================================================================
# ENCODING TESTS
# ================================================================
class TestEncode:
    """Test MBAP encoding."""

    def test_encode_exact_bytes(self):
        """Test encoding against a known frame.

        WHY: Wire format must be byte-exact for interoperability.
        """
        frame = encode(1, 1, PDU(FunctionCode.READ_HOLDING_REGISTERS, b"\x00\x00\x00\x0a"))

        assert frame == bytes.fromhex("0001 0000 0006 01 03 0000 000a")

    def test_length_counts_unit_id_and_pdu(self):
        """Test the MBAP length field.

        WHY: Length = 1 (unit id) + PDU length.
        """
        frame = encode(7, 0x1234, PDU(0x06, b"\x00\x01\x00\x02"))

        assert frame[0:2] == b"\x12\x34"
        assert frame[2:4] == b"\x00\x00"
        assert int.from_bytes(frame[4:6], "big") == 6
        assert frame[6] == 7

    def test_encode_adu_matches_encode(self):
        """Test that encode_adu is a thin wrapper around encode.

        WHY: Server and client use the ADU form.
        """
        pdu = PDU(0x01, b"\x00\x00\x00\x08")

        assert encode_adu(ADU(5, 2, pdu)) == encode(2, 5, pdu)

    @pytest.mark.parametrize("transaction_id", [-1, 0x10000])
    def test_transaction_id_out_of_range(self, transaction_id):
        """Test that transaction ids must fit 16 bits.

        WHY: Out-of-width fields must fail loudly, not wrap silently.
        """
        with pytest.raises(ValueError, match="transaction_id"):
            encode(1, transaction_id, PDU(3, b""))

    @pytest.mark.parametrize("unit_id", [-1, 256])
    def test_unit_id_out_of_range(self, unit_id):
        """Test that unit ids must fit one byte.

        WHY: Out-of-width fields must fail loudly.
        """
        with pytest.raises(ValueError, match="unit_id"):
            encode(unit_id, 1, PDU(3, b""))


# ================================================================
# DECODING TESTS
# ================================================================
class TestDecode:
    """Test MBAP decoding."""

    @pytest.mark.parametrize("function_code", list(FunctionCode))
    def test_round_trip_every_function_code(self, function_code):
        """Test decode(encode(x)) == x for each supported function code.

        WHY: Codec must be lossless for every function the engine speaks.
        """
        pdu = PDU(function_code, b"\x00\x01\x00\x02")

        assert decode(encode(17, 0xBEEF, pdu)) == (17, 0xBEEF, pdu)

    def test_decode_adu(self):
        """Test the ADU form of decode.

        WHY: The transport hands ADUs to the dispatcher.
        """
        adu = decode_adu(bytes.fromhex("00 2a 00 00 00 03 01 83 02"))

        assert adu == ADU(transaction_id=42, unit_id=1, pdu=PDU(0x83, b"\x02"))

    def test_decode_short_frame_raises(self):
        """Test that frames shorter than header + function code fail.

        WHY: Cannot decode what is not there.
        """
        with pytest.raises(FrameError, match="too short"):
            decode(bytes.fromhex("00 01 00 00 00 01 01"))

    def test_decode_bad_protocol_id_raises(self):
        """Test that a nonzero protocol id is rejected.

        WHY: Protocol id 0 identifies Modbus; anything else is foreign traffic.
        """
        with pytest.raises(FrameError, match="protocol ID"):
            decode(bytes.fromhex("00 01 00 01 00 02 01 03"))

    def test_decode_length_mismatch_raises(self):
        """Test that a length field disagreeing with the frame fails.

        WHY: A length mismatch means the stream is out of sync.
        """
        with pytest.raises(FrameError, match="Length mismatch"):
            decode(bytes.fromhex("00 01 00 00 00 05 01 03 00"))


# ================================================================
# HEADER TESTS
# ================================================================
class TestParseHeader:
    """Test the six-byte prefix parser used by stream readers."""

    def test_returns_remaining_length(self):
        """Test that the declared length is returned.

        WHY: Stream readers use it to read exactly one frame body.
        """
        assert parse_header(bytes.fromhex("00 01 00 00 00 06")) == 6

    def test_bad_protocol_id(self):
        """Test that the prefix parser checks the protocol id.

        WHY: Bad traffic is rejected before reading a body.
        """
        with pytest.raises(FrameError):
            parse_header(bytes.fromhex("00 01 12 34 00 06"))

    @pytest.mark.parametrize("length", [0, 1, 255, 0xFFFF])
    def test_length_out_of_bounds(self, length):
        """Test that impossible lengths are rejected.

        WHY: Length must cover unit id + function code, and at most 254 bytes.
        """
        prefix = b"\x00\x01\x00\x00" + length.to_bytes(2, "big")

        with pytest.raises(FrameError, match="length"):
            parse_header(prefix)


class TestFormatFrame:
    """Test debug formatting."""

    def test_format_frame(self):
        """Test bracketed hex rendering.

        WHY: Debug logs show frames byte by byte.
        """
        assert format_frame(b"\x00\x01\xff") == "[00][01][ff]"
