# MIT License
#
# Copyright (c) 2018 Evgeny Medvedev, evge.medvedev@gmail.com
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

from typing import Optional

from eth_utils import is_hex_address, remove_0x_prefix
from eth_utils import to_normalized_address as eth_to_normalized_address

from utils.exceptions import BytecodeParseError

ZERO_ADDRESS = "0x" + "0" * 40


def to_normalized_address(address: Optional[str]) -> Optional[str]:
    """
    Lowercase 0x-prefixed form of an address, so checksummed and plain
    addresses compare equal. Returns None for None or malformed input.
    """
    if address is None or not isinstance(address, str):
        return None
    if not is_hex_address(address):
        return None
    return eth_to_normalized_address(address)


def clean_bytecode(bytecode: Optional[str]) -> str:
    """Strips the 0x prefix and surrounding whitespace. None and '0x' become ''."""
    if bytecode is None:
        return ""
    return remove_0x_prefix(bytecode.strip())


def bytecode_to_bytes(bytecode: Optional[str]) -> bytes:
    hex_code = clean_bytecode(bytecode)
    try:
        return bytes.fromhex(hex_code)
    except ValueError as e:
        raise BytecodeParseError(f"Bytecode is not valid hex: {e}") from e


def bytes32_to_address(hex_data: Optional[str]) -> Optional[str]:
    """
    Interprets a 32-byte word (storage slot value or ABI-encoded return value)
    as an address: the low 20 bytes are kept, the high 12 bytes are ignored.
    Returns None for empty/short data and for the zero address.
    """
    if not hex_data or hex_data == "0x":
        return None

    word = clean_bytecode(hex_data)
    if len(word) < 40:
        return None

    address = "0x" + word[-40:].lower()
    if address == ZERO_ADDRESS or not is_hex_address(address):
        return None
    return address


def address_to_slot(address: str) -> str:
    """Left-pads an address to a 32-byte storage slot key."""
    return "0x" + clean_bytecode(address).lower().rjust(64, "0")
