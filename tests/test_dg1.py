import pytest

from conftest import MRZ_LINE2, build_dg1
from tools.dg1 import compute_check_digit, parse_dg1, tamper_byte, tamper_field
from tools.errors import DG1ParseError


def test_parse_td3(dg1):
    fields = parse_dg1(dg1)
    assert len(dg1) == 93
    assert fields.document_type == "P"
    assert fields.issuing_state == "UTO"
    assert fields.surname == "ERIKSSON"
    assert fields.given_names == "ANNA MARIA"
    assert fields.document_number == "L898902C3"
    assert fields.nationality == "UTO"
    assert fields.date_of_birth == "740812"
    assert fields.sex == "F"
    assert fields.date_of_expiry == "120415"
    assert fields.line2 == MRZ_LINE2
    assert fields.check_digits_valid()


def test_check_digit():
    assert compute_check_digit("L898902C3") == "6"
    assert compute_check_digit("740812") == "2"
    assert compute_check_digit("120415") == "9"


def test_short_dg1_raises():
    with pytest.raises(DG1ParseError):
        parse_dg1(b"\x61\x5b" + b"A" * 50)


def test_td1_dg1_raises():
    td1 = bytes([0x61, 0x5D, 0x5F, 0x1F, 0x5A]) + b"I<UTOD231458907<<<<<<<<<<<<<<<" * 3
    assert len(td1) == 95
    with pytest.raises(DG1ParseError):
        parse_dg1(td1)


def test_wrong_tags_raise(dg1):
    with pytest.raises(DG1ParseError):
        parse_dg1(b"\x62" + dg1[1:])


def test_tamper_byte(dg1):
    tampered = tamper_byte(dg1, 10, 0x41)
    assert tampered[10] == 0x41
    assert tampered[:10] == dg1[:10] and tampered[11:] == dg1[11:]
    with pytest.raises(IndexError):
        tamper_byte(dg1, len(dg1), 0)
    with pytest.raises(IndexError):
        tamper_byte(dg1, -1, 0)


def test_tamper_fields(dg1):
    assert parse_dg1(tamper_field(dg1, "nationality", "IRN")).nationality == "IRN"
    assert parse_dg1(tamper_field(dg1, "issuingState", "D")).issuing_state == "D"
    assert parse_dg1(tamper_field(dg1, "sex", "M")).sex == "M"
    assert parse_dg1(tamper_field(dg1, "dateOfBirth", "9901")).date_of_birth == "990100"
    assert parse_dg1(tamper_field(dg1, "dateOfExpiry", "301231")).date_of_expiry == "301231"
    changed = tamper_field(dg1, "nationality", "IRN")
    assert len(changed) == len(dg1)
    assert changed[:15] == dg1[:15]


def test_tamper_unknown_field(dg1):
    with pytest.raises(ValueError):
        tamper_field(dg1, "surname", "DOE")


def test_build_dg1_layout():
    dg1 = build_dg1()
    assert dg1[:5] == bytes([0x61, 0x5B, 0x5F, 0x1F, 0x58])
