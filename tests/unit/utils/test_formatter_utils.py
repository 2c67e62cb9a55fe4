import pytest

from utils.exceptions import BytecodeParseError
from utils.formatter_utils import (
    address_to_slot,
    bytecode_to_bytes,
    bytes32_to_address,
    clean_bytecode,
    to_normalized_address,
)


def test_to_normalized_address():
    assert to_normalized_address("0xAbCdEf0000000000000000000000000000000001") == "0xabcdef0000000000000000000000000000000001"
    assert to_normalized_address("0x1234") is None
    assert to_normalized_address(None) is None


def test_clean_bytecode():
    assert clean_bytecode(" 0x6080 ") == "6080"
    assert clean_bytecode("6080") == "6080"
    assert clean_bytecode("0x") == ""
    assert clean_bytecode(None) == ""


def test_bytecode_to_bytes():
    assert bytecode_to_bytes("0x6080") == b"\x60\x80"
    with pytest.raises(BytecodeParseError):
        bytecode_to_bytes("0x608")


def test_bytes32_to_address():
    word = "0x000000000000000000000000" + "ab" * 20
    assert bytes32_to_address(word) == "0x" + "ab" * 20
    assert bytes32_to_address("0x" + "0" * 64) is None
    assert bytes32_to_address("0x") is None
    assert bytes32_to_address("0x1234") is None


def test_address_to_slot():
    assert address_to_slot("0x" + "AB" * 20) == "0x" + "0" * 24 + "ab" * 20
