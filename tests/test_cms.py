import hashlib

import pytest

from conftest import LDS_OID, build_sod, der, with_version
from tools.cms import parse_signed_data, verify_signed_data
from tools.der import strip_icao_wrapper
from tools.errors import CMSParseError


def test_parse_sod_envelope(pki, sod):
    envelope = parse_signed_data(strip_icao_wrapper(sod, 0x77))
    assert envelope.content_type_oid == LDS_OID
    assert envelope.certificates == [pki.ds_cert]
    si = envelope.signer_info
    assert si.digest_algorithm_oid == "2.16.840.1.101.3.4.2.1"
    assert si.signed_attributes[0] == 0xA0
    assert si.signed_attributes_for_verification()[0] == 0x31
    assert si.signed_attributes_for_verification()[1:] == si.signed_attributes[1:]
    assert si.message_digest == hashlib.sha256(envelope.encapsulated_content).digest()


def test_signed_data_verifies(pki, other_pki, sod):
    envelope = parse_signed_data(strip_icao_wrapper(sod, 0x77))
    assert verify_signed_data(envelope, pki.ds_cert) is True
    assert verify_signed_data(envelope, other_pki.ds_cert) is False


def test_without_signed_attributes(pki, dg1):
    envelope = parse_signed_data(build_sod(dg1, pki.ds_key, pki.ds_cert, wrap=False, signed_attributes=False))
    assert envelope.signer_info.signed_attributes is None
    assert envelope.signer_info.signed_attributes_for_verification() is None
    assert verify_signed_data(envelope, pki.ds_cert) is True


@pytest.mark.parametrize("blob", [b"", b"\x30\x03\x02\x01\x00", b"\x04\x02ab", b"\x30\x82\xff\xff"])
def test_malformed_input_raises(blob):
    with pytest.raises(CMSParseError):
        parse_signed_data(blob)


def test_embedded_certificate_with_unknown_version(pki, sod):
    ds_der = der(pki.ds_cert)
    assert ds_der in sod
    tampered = sod.replace(ds_der, with_version(ds_der, 7))
    with pytest.raises(CMSParseError):
        parse_signed_data(strip_icao_wrapper(tampered, 0x77))
