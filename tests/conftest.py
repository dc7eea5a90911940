import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import pytest

# --- ASN.1 and Crypto Libraries ---
import asn1crypto.cms as cms
import asn1crypto.x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import NameOID
from pymrtd.ef.sod import LDSSecurityObject as PymrtdLDSSecurityObject
from pymrtd.ef.sod import SOD as PymrtdSOD

LDS_OID = "2.23.136.1.1.1"
MASTER_LIST_OID = "2.23.136.1.1.2"

MRZ_LINE1 = "P<UTOERIKSSON<<ANNA<MARIA".ljust(44, "<")
MRZ_LINE2 = "L898902C36UTO7408122F1204159ZE184226B<<<<<10"


# --------------------------------------------------------------------------
# 1. Test Public Key Infrastructure (PKI) Generation
# --------------------------------------------------------------------------

def make_name(country: str, org: str, cn: Optional[str] = None, ou: Optional[str] = None) -> x509.Name:
    attrs = [
        x509.NameAttribute(NameOID.COUNTRY_NAME, country),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, org),
    ]
    if ou:
        attrs.append(x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, ou))
    if cn:
        attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, cn))
    return x509.Name(attrs)


def make_cert(
    subject: x509.Name,
    issuer: x509.Name,
    public_key,
    signing_key,
    ca: bool,
    not_before: Optional[datetime] = None,
    not_after: Optional[datetime] = None,
    key_ids: bool = True,
) -> x509.Certificate:
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - timedelta(days=1))
        .not_valid_after(not_after or now + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if key_ids:
        builder = builder.add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()), critical=False
        )
    return builder.sign(signing_key, hashes.SHA256())


def der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


def with_version(cert_der: bytes, version: int) -> bytes:
    """Rewrite the [0] EXPLICIT version INTEGER of a v3 certificate."""
    v3 = bytes([0xA0, 0x03, 0x02, 0x01, 0x02])
    offset = cert_der.index(v3)
    return cert_der[:offset + 4] + bytes([version]) + cert_der[offset + 5:]


@dataclass
class PKI:
    csca_key: rsa.RSAPrivateKey
    csca_cert: x509.Certificate
    ds_key: rsa.RSAPrivateKey
    ds_cert: x509.Certificate


def generate_test_pki(country: str = "UT") -> PKI:
    """A CSCA and a DS certificate signed by it."""
    csca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    csca_subject = make_name(country, "UnitTest CSCA", cn="UnitTest CSCA")
    csca_cert = make_cert(csca_subject, csca_subject, csca_key.public_key(), csca_key, ca=True)

    ds_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ds_subject = make_name(country, "UnitTest DS", cn="UnitTest Document Signer")
    ds_cert = make_cert(ds_subject, csca_subject, ds_key.public_key(), csca_key, ca=False)
    return PKI(csca_key, csca_cert, ds_key, ds_cert)


@pytest.fixture(scope="session")
def pki() -> PKI:
    return generate_test_pki()


@pytest.fixture(scope="session")
def other_pki() -> PKI:
    return generate_test_pki(country="XX")


@dataclass
class UNPKI:
    root_key: rsa.RSAPrivateKey
    root_cert: x509.Certificate
    signer_key: rsa.RSAPrivateKey
    signer_cert: x509.Certificate


@pytest.fixture(scope="session")
def un_pki() -> UNPKI:
    root_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    root_subject = make_name("UN", "United Nations", cn="United Nations CSCA", ou="Certification Authorities")
    root_cert = make_cert(root_subject, root_subject, root_key.public_key(), root_key, ca=True)

    signer_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    signer_subject = make_name("UN", "United Nations", cn="ICAO Master List Signer", ou="Master List Signers")
    signer_cert = make_cert(signer_subject, root_subject, signer_key.public_key(), root_key, ca=False)
    return UNPKI(root_key, root_cert, signer_key, signer_cert)


# --------------------------------------------------------------------------
# 2. DG1, SOD and Master List Generation
# --------------------------------------------------------------------------

def build_dg1(line1: str = MRZ_LINE1, line2: str = MRZ_LINE2) -> bytes:
    """TD3 DG1: 0x61 0x5B 0x5F1F 0x58 + 88 MRZ characters."""
    return bytes([0x61, 0x5B, 0x5F, 0x1F, 0x58]) + (line1 + line2).encode("ascii")


def der_tlv(tag: int, value: bytes) -> bytes:
    n = len(value)
    if n < 0x80:
        length = bytes([n])
    else:
        raw = n.to_bytes((n.bit_length() + 7) // 8, "big")
        length = bytes([0x80 | len(raw)]) + raw
    return bytes([tag]) + length + value


def build_lds(dg1: bytes, extra_dgs: Iterable[int] = (2, 11)) -> bytes:
    values = [{"dataGroupNumber": 1, "dataGroupHashValue": hashlib.sha256(dg1).digest()}]
    for n in extra_dgs:
        values.append({"dataGroupNumber": n, "dataGroupHashValue": hashlib.sha256(b"DG%d" % n).digest()})
    lds_obj = PymrtdLDSSecurityObject({
        "version": 0,
        "hashAlgorithm": {"algorithm": "sha256"},
        "dataGroupHashValues": values,
    })
    return lds_obj.dump()


def _sign(key, data: bytes, scheme: str) -> bytes:
    if scheme == "pss":
        return key.sign(data, padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=32), hashes.SHA256())
    if scheme == "ecdsa":
        return key.sign(data, ec.ECDSA(hashes.SHA256()))
    return key.sign(data, padding.PKCS1v15(), hashes.SHA256())


def _signature_algorithm(scheme: str) -> dict:
    if scheme == "pss":
        return {
            "algorithm": "rsassa_pss",
            "parameters": {
                "hash_algorithm": {"algorithm": "sha256"},
                "mask_gen_algorithm": {"algorithm": "mgf1", "parameters": {"algorithm": "sha256"}},
                "salt_length": 32,
            },
        }
    if scheme == "ecdsa":
        return {"algorithm": "sha256_ecdsa"}
    return {"algorithm": "rsassa_pkcs1v15"}


def build_signed_data(
    content: bytes,
    content_oid: str,
    signer_key,
    signer_cert: x509.Certificate,
    embedded_certs: List[x509.Certificate],
    scheme: str = "pkcs1",
    signed_attributes: bool = True,
    content_override: Optional[bytes] = None,
) -> bytes:
    """ContentInfo(SignedData) over `content`; `content_override` is embedded instead after signing."""
    asn1_signer = asn1_x509.Certificate.load(der(signer_cert))
    signer_info = {
        "version": "v1",
        "sid": cms.SignerIdentifier({
            "issuer_and_serial_number": cms.IssuerAndSerialNumber({
                "issuer": asn1_signer.issuer,
                "serial_number": asn1_signer.serial_number,
            })
        }),
        "digest_algorithm": {"algorithm": "sha256"},
        "signature_algorithm": _signature_algorithm(scheme),
    }
    if signed_attributes:
        attrs = cms.CMSAttributes([
            cms.CMSAttribute({"type": "content_type", "values": [cms.ContentType(content_oid)]}),
            cms.CMSAttribute({"type": "message_digest", "values": [hashlib.sha256(content).digest()]}),
        ])
        signer_info["signed_attrs"] = attrs
        signer_info["signature"] = _sign(signer_key, attrs.dump(), scheme)
    else:
        signer_info["signature"] = _sign(signer_key, content, scheme)

    signed_data = cms.SignedData({
        "version": "v3",
        "digest_algorithms": [{"algorithm": "sha256"}],
        "encap_content_info": {
            "content_type": content_oid,
            "content": content_override if content_override is not None else content,
        },
        "certificates": [asn1_x509.Certificate.load(der(c)) for c in embedded_certs],
        "signer_infos": [cms.SignerInfo(signer_info)],
    })
    return cms.ContentInfo({"content_type": "signed_data", "content": signed_data}).dump()


def build_sod(
    dg1: bytes,
    ds_key,
    ds_cert: x509.Certificate,
    scheme: str = "pkcs1",
    wrap: bool = True,
    signed_attributes: bool = True,
    tamper_content: bool = False,
    extra_dgs: Iterable[int] = (2, 11),
) -> bytes:
    """EF.SOD over an LDSSecurityObject holding DG1 (and a few other DG) hashes."""
    lds = build_lds(dg1, extra_dgs)
    override = build_lds(dg1 + b"x", extra_dgs) if tamper_content else None
    content_info_der = build_signed_data(
        lds, LDS_OID, ds_key, ds_cert, [ds_cert],
        scheme=scheme, signed_attributes=signed_attributes, content_override=override,
    )
    if not wrap:
        return content_info_der
    # Use the EF.SOD tag expected by pymrtd (23 -> 0x77).
    return PymrtdSOD(tag=23, contents=content_info_der).dump()


def build_master_list_content(cscas: List[x509.Certificate]) -> bytes:
    cert_list = der_tlv(0x31, b"".join(der(c) for c in cscas))
    return der_tlv(0x30, bytes([0x02, 0x01, 0x00]) + cert_list)


def build_master_list(un: UNPKI, cscas: List[x509.Certificate], tamper: bool = False) -> bytes:
    content = build_master_list_content(cscas)
    override = build_master_list_content(cscas[:-1]) if tamper else None
    return build_signed_data(
        content, MASTER_LIST_OID, un.signer_key, un.signer_cert,
        [un.signer_cert, un.root_cert], content_override=override,
    )


@pytest.fixture(scope="session")
def dg1() -> bytes:
    return build_dg1()


@pytest.fixture(scope="session")
def sod(pki, dg1) -> bytes:
    return build_sod(dg1, pki.ds_key, pki.ds_cert)
