"""Unit tests for program error decoding."""

from services.matrix.errors import TerminalConfigMissing
from services.matrix.program_errors import (
    PROGRAM_ERRORS, format_activation_error, lookup, parse_program_error,
)


class TestErrorTable:
    def test_codes_contiguous(self):
        assert sorted(PROGRAM_ERRORS) == list(range(6000, 6018))

    def test_lookup(self):
        err = lookup(6014)
        assert err.name == "QueueNextPageAlreadyExists"
        assert "rollover" in err.message

    def test_unknown(self):
        assert lookup(42) is None


class TestParse:
    """Code extraction from the shapes RPC errors take."""

    def test_instruction_error_dict(self):
        assert parse_program_error({"InstructionError": [1, {"Custom": 6004}]}).name == "AlreadyActivated"

    def test_instruction_error_json(self):
        assert parse_program_error('{"InstructionError": [1, {"Custom": 6015}]}').code == 6015

    def test_hex_log(self):
        logs = ["Program log: something", "Program X failed: custom program error: 0x1773"]
        assert parse_program_error(None, logs).code == 6003

    def test_anchor_error_number(self):
        msg = "AnchorError occurred. Error Code: LevelNotActivated. Error Number: 6008."
        assert parse_program_error(msg).name == "LevelNotActivated"

    def test_non_program_error(self):
        assert parse_program_error("blockhash not found") is None


class TestFormat:
    def test_already_activated(self):
        err = {"InstructionError": [1, {"Custom": 6004}]}
        assert format_activation_error(err, 3) == "Level 3 is already activated"

    def test_program_error(self):
        assert format_activation_error("Error Number: 6012", 2) == "Level 2 activation failed: Queue page is full"

    def test_config_missing(self):
        msg = format_activation_error(TerminalConfigMissing("Failed to fetch Config X"), 1)
        assert msg.startswith("Failed to connect")

    def test_insufficient_funds(self):
        assert "Insufficient SOL" in format_activation_error("insufficient funds for rent", 9)

    def test_fallback(self):
        assert format_activation_error("weird", 4) == "Level 4 activation failed: weird"
