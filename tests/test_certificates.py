from datetime import datetime, timedelta, timezone

import pytest
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from conftest import der, make_cert, make_name, with_version
from tools.certificates import (
    describe_certificate,
    filter_by_country,
    find_issuer_candidates,
    get_rsa_exponent,
    get_rsa_modulus,
    load_certificate,
    normalize_dn,
    verify_certificate,
    verify_certificate_chain,
    verify_signature_with_key,
)
from tools.errors import CertificateParseError


def test_load_pem_and_der(pki):
    pem = pki.ds_cert.public_bytes(serialization.Encoding.PEM)
    assert load_certificate(pem) == pki.ds_cert
    assert load_certificate(pem.decode()) == pki.ds_cert
    assert load_certificate(der(pki.ds_cert)) == pki.ds_cert


def test_load_garbage_raises():
    with pytest.raises(CertificateParseError):
        load_certificate(b"\x30\x03\x02\x01\x00")


def test_load_unknown_version_raises(pki):
    with pytest.raises(CertificateParseError):
        load_certificate(with_version(der(pki.ds_cert), 7))


def test_rsa_key_material(pki):
    numbers = pki.ds_key.public_key().public_numbers()
    assert get_rsa_modulus(pki.ds_cert) == numbers.n
    assert get_rsa_exponent(pki.ds_cert) == 65537


def test_verify_certificate(pki, other_pki):
    assert verify_certificate(pki.ds_cert, pki.csca_cert) is True
    assert verify_certificate(pki.csca_cert, pki.csca_cert) is True
    assert verify_certificate(pki.ds_cert, other_pki.csca_cert) is False


def test_verify_certificate_ecdsa_issuer():
    key = ec.generate_private_key(ec.SECP256R1())
    name = make_name("EC", "EC CSCA")
    root = make_cert(name, name, key.public_key(), key, ca=True)
    child_key = ec.generate_private_key(ec.SECP256R1())
    child = make_cert(make_name("EC", "EC DS"), name, child_key.public_key(), key, ca=False)
    assert verify_certificate(child, root) is True
    assert verify_certificate(root, child) is False


class UnknownHashCertificate:
    signature = b"\x00" * 256
    tbs_certificate_bytes = b"\x30\x00"
    signature_algorithm_parameters = None

    @property
    def signature_hash_algorithm(self):
        raise UnsupportedAlgorithm("Signature algorithm OID: 1.2.3.4 not recognized")


def test_verify_unknown_signature_hash_is_false(pki):
    assert verify_signature_with_key(UnknownHashCertificate(), pki.csca_cert.public_key()) is False


def test_chain_all_checks_pass(pki):
    result = verify_certificate_chain(pki.ds_cert, pki.csca_cert)
    assert result.as_dict() == {
        "signatureValid": True,
        "issuerMatch": True,
        "akiSkiMatch": True,
        "dsCertValid": True,
        "cscaValid": True,
    }
    assert result.valid


def test_chain_wrong_csca_reports_every_check(pki, other_pki):
    result = verify_certificate_chain(pki.ds_cert, other_pki.csca_cert)
    assert result.signature_valid is False
    assert result.issuer_match is False
    assert result.aki_ski_match is False
    assert result.ds_cert_valid is True
    assert result.csca_valid is True
    assert not result.valid


def test_chain_without_key_identifiers(pki):
    ds = make_cert(
        make_name("UT", "No AKI DS"), pki.csca_cert.subject, pki.ds_key.public_key(), pki.csca_key,
        ca=False, key_ids=False,
    )
    assert verify_certificate_chain(ds, pki.csca_cert).aki_ski_match is None


def test_chain_expired_ds(pki):
    now = datetime.now(timezone.utc)
    expired = make_cert(
        make_name("UT", "Expired DS"), pki.csca_cert.subject, pki.ds_key.public_key(), pki.csca_key,
        ca=False, not_before=now - timedelta(days=30), not_after=now - timedelta(days=1),
    )
    result = verify_certificate_chain(expired, pki.csca_cert)
    assert result.signature_valid is True
    assert result.ds_cert_valid is False
    # evaluated at a past instant the same certificate is valid
    assert verify_certificate_chain(expired, pki.csca_cert, at=now - timedelta(days=10)).ds_cert_valid


def test_normalize_dn_ignores_attribute_order():
    a = make_name("UT", "Org", cn="Name")
    b = make_name("UT", "Org", cn="Name")
    assert normalize_dn(a) == normalize_dn(b)
    assert normalize_dn(a).split(",") == sorted(normalize_dn(a).split(","))


def test_describe_certificate(pki):
    info = describe_certificate(pki.ds_cert)
    assert info.subject_country == "UT"
    assert info.issuer_organization == "UnitTest CSCA"
    assert info.key_type == "RSA-2048"
    assert info.modulus_bits == 2048
    assert info.authority_key_id is not None


def test_issuer_candidates_prioritise_matching_csca(pki, other_pki):
    candidates = find_issuer_candidates(pki.ds_cert, [other_pki.csca_cert, pki.csca_cert])
    assert candidates[0] == pki.csca_cert
    assert len(candidates) == 2


def test_filter_by_country(pki, other_pki):
    assert filter_by_country([pki.csca_cert, other_pki.csca_cert], "xx") == [other_pki.csca_cert]
