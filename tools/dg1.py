# /tools/dg1.py
"""
DG1 (MRZ) parsing and test tampering for TD3 passports.

TD3 DG1 is 93 bytes: 0x61 0x5B | 0x5F1F 0x58 | 88 MRZ characters, i.e. two
44-character lines starting at offset 5.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from tools.constants import DG1_TD3_LENGTH, EF_DG1_TAG, MRZ_DATA_TAG, MRZ_LINE_LENGTH, MRZ_OFFSET
from tools.der import read_tag
from tools.errors import DERParseError, DG1ParseError

_LINE2 = MRZ_OFFSET + MRZ_LINE_LENGTH

# field -> (absolute offset in DG1, width, pad character)
TAMPERABLE_FIELDS: Dict[str, Tuple[int, int, str]] = {
    "issuingState": (MRZ_OFFSET + 2, 3, "<"),
    "documentNumber": (_LINE2 + 0, 9, "<"),
    "nationality": (_LINE2 + 10, 3, "<"),
    "dateOfBirth": (_LINE2 + 13, 6, "0"),
    "sex": (_LINE2 + 20, 1, "<"),
    "dateOfExpiry": (_LINE2 + 21, 6, "0"),
}

_CHECK_WEIGHTS = (7, 3, 1)


@dataclass(frozen=True)
class MRZFields:
    document_type: str
    issuing_state: str
    surname: str
    given_names: str
    document_number: str
    nationality: str
    date_of_birth: str
    sex: str
    date_of_expiry: str
    line1: str
    line2: str

    def check_digits_valid(self) -> bool:
        """Document number, birth date and expiry check digits of line 2."""
        l2 = self.line2
        return (
            compute_check_digit(l2[0:9]) == l2[9]
            and compute_check_digit(l2[13:19]) == l2[19]
            and compute_check_digit(l2[21:27]) == l2[27]
        )

    def as_dict(self) -> Dict[str, str]:
        return {
            "documentType": self.document_type,
            "issuingState": self.issuing_state,
            "surname": self.surname,
            "givenNames": self.given_names,
            "documentNumber": self.document_number,
            "nationality": self.nationality,
            "dateOfBirth": self.date_of_birth,
            "sex": self.sex,
            "dateOfExpiry": self.date_of_expiry,
        }


def compute_check_digit(data: str) -> str:
    """ICAO 9303 check digit: weights 7-3-1, digits as-is, A=10..Z=35, '<'=0."""
    total = 0
    for i, ch in enumerate(data):
        if ch.isdigit():
            value = int(ch)
        elif "A" <= ch <= "Z":
            value = ord(ch) - ord("A") + 10
        else:
            value = 0
        total += value * _CHECK_WEIGHTS[i % 3]
    return str(total % 10)


def _require_td3(dg1: bytes) -> None:
    if len(dg1) < DG1_TD3_LENGTH:
        raise DG1ParseError(f"DG1 is {len(dg1)} bytes, TD3 needs {DG1_TD3_LENGTH}")


def parse_dg1(dg1: bytes) -> MRZFields:
    _require_td3(dg1)
    try:
        outer = read_tag(dg1, 0)
        inner = read_tag(dg1, outer.header_length)
    except DERParseError as e:
        raise DG1ParseError(f"DG1 TLV structure is malformed: {e}") from e
    if outer.tag != EF_DG1_TAG or inner.tag != MRZ_DATA_TAG:
        raise DG1ParseError(f"Unexpected DG1 tags 0x{outer.tag:X}/0x{inner.tag:X}")
    if inner.length != 2 * MRZ_LINE_LENGTH or outer.length != inner.total_length:
        raise DG1ParseError(
            f"MRZ is {inner.length} characters in a {outer.length}-byte DG1, TD3 carries {2 * MRZ_LINE_LENGTH}"
        )

    mrz = dg1[MRZ_OFFSET:MRZ_OFFSET + 2 * MRZ_LINE_LENGTH].decode("ascii", errors="replace")
    line1, line2 = mrz[:MRZ_LINE_LENGTH], mrz[MRZ_LINE_LENGTH:]

    name = line1[5:44]
    surname, _, given = name.partition("<<")

    return MRZFields(
        document_type=line1[0],
        issuing_state=line1[2:5].replace("<", ""),
        surname=surname.replace("<", " ").strip(),
        given_names=given.replace("<", " ").strip(),
        document_number=line2[0:9].replace("<", ""),
        nationality=line2[10:13].replace("<", ""),
        date_of_birth=line2[13:19],
        sex=line2[20],
        date_of_expiry=line2[21:27],
        line1=line1,
        line2=line2,
    )


def tamper_byte(dg1: bytes, offset: int, value: int) -> bytes:
    """Copy of DG1 with one byte replaced."""
    if not 0 <= offset < len(dg1):
        raise IndexError(f"Offset {offset} outside DG1 of length {len(dg1)}")
    if not 0 <= value <= 0xFF:
        raise ValueError(f"Byte value {value} out of range")
    out = bytearray(dg1)
    out[offset] = value
    return bytes(out)


def tamper_field(dg1: bytes, field_name: str, value: str) -> bytes:
    """Copy of DG1 with one MRZ field overwritten, padded/truncated to the field width."""
    _require_td3(dg1)
    try:
        offset, width, pad = TAMPERABLE_FIELDS[field_name]
    except KeyError:
        raise ValueError(
            f"Unknown DG1 field '{field_name}', expected one of {sorted(TAMPERABLE_FIELDS)}"
        ) from None
    text = value[:width].ljust(width, pad).encode("ascii")
    out = bytearray(dg1)
    out[offset:offset + width] = text
    return bytes(out)
