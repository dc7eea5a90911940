# /tools/certificates.py
"""
X.509 helpers for the passport trust chain.

Loading (PEM or DER), RSA key extraction, AKI/SKI lookup, validity windows,
and the two checks the chain needs: "was certificate A signed by B's key"
and the DS -> CSCA diagnostic report.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import CertificatePublicKeyTypes
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from cryptography.x509.oid import ExtensionOID, NameOID

from tools.errors import CertificateParseError

logger = logging.getLogger(__name__)


# ----- Loading -----

def load_certificate(data: Union[bytes, str]) -> x509.Certificate:
    """Load a certificate from PEM text/bytes or DER bytes."""
    raw = data.encode("ascii") if isinstance(data, str) else bytes(data)
    try:
        if raw.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificate(raw)
        return x509.load_der_x509_certificate(raw)
    except (ValueError, x509.InvalidVersion) as e:
        raise CertificateParseError(f"Could not load certificate: {e}") from e


def to_der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(Encoding.DER)


def to_pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(Encoding.PEM).decode("ascii")


def spki_der(cert: x509.Certificate) -> bytes:
    """Raw SubjectPublicKeyInfo bytes, exactly as encoded in the certificate."""
    return cert.public_key().public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)


# ----- Key material -----

def get_rsa_modulus(cert: x509.Certificate) -> int:
    key = cert.public_key()
    if not isinstance(key, rsa.RSAPublicKey):
        raise CertificateParseError(
            f"Certificate {cert.subject.rfc4514_string()} does not carry an RSA key"
        )
    return key.public_numbers().n


def get_rsa_exponent(cert: x509.Certificate) -> int:
    key = cert.public_key()
    if not isinstance(key, rsa.RSAPublicKey):
        raise CertificateParseError(
            f"Certificate {cert.subject.rfc4514_string()} does not carry an RSA key"
        )
    return key.public_numbers().e


def key_type(cert: x509.Certificate) -> str:
    key = cert.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        return f"RSA-{key.key_size}"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return f"EC-{key.curve.name}"
    return type(key).__name__


def _bhex(b: Optional[bytes]) -> Optional[str]:
    return b.hex() if isinstance(b, (bytes, bytearray)) else None


def get_aki_keyid(cert: x509.Certificate) -> Optional[bytes]:
    """keyIdentifier of the Authority Key Identifier extension, if any."""
    try:
        aki = cert.extensions.get_extension_for_oid(ExtensionOID.AUTHORITY_KEY_IDENTIFIER).value
    except x509.ExtensionNotFound:
        logger.debug(f"AKI missing: subject={cert.subject.rfc4514_string()}")
        return None
    keyid = aki.key_identifier
    logger.debug(f"AKI lookup: subject={cert.subject.rfc4514_string()}, keyid={_bhex(keyid)}")
    return keyid


def get_ski_keyid(cert: x509.Certificate) -> Optional[bytes]:
    """Digest of the Subject Key Identifier extension, if any."""
    try:
        ski = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_KEY_IDENTIFIER).value
    except x509.ExtensionNotFound:
        logger.debug(f"SKI missing: subject={cert.subject.rfc4514_string()}")
        return None
    return ski.digest


# ----- Names and validity -----

def normalize_dn(name: x509.Name) -> str:
    """Order-insensitive DN string: one RDN attribute per entry, trimmed, sorted."""
    parts = [attr.rfc4514_string().strip() for attr in name]
    return ",".join(sorted(p for p in parts if p))


def is_within_validity(cert: x509.Certificate, at: Optional[datetime] = None) -> bool:
    at = at or datetime.now(timezone.utc)
    return cert.not_valid_before_utc <= at <= cert.not_valid_after_utc


def country_of(name: x509.Name) -> Optional[str]:
    attrs = name.get_attributes_for_oid(NameOID.COUNTRY_NAME)
    return attrs[0].value if attrs else None


def _organization_of(name: x509.Name) -> Optional[str]:
    attrs = name.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
    return attrs[0].value if attrs else None


@dataclass(frozen=True)
class CertificateInfo:
    subject: str
    issuer: str
    subject_country: Optional[str]
    subject_organization: Optional[str]
    issuer_country: Optional[str]
    issuer_organization: Optional[str]
    serial_number: str
    not_before: str
    not_after: str
    key_type: str
    modulus_bits: Optional[int]
    exponent: Optional[int]
    authority_key_id: Optional[str]
    subject_key_id: Optional[str]

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)


def describe_certificate(cert: x509.Certificate) -> CertificateInfo:
    key = cert.public_key()
    is_rsa = isinstance(key, rsa.RSAPublicKey)
    return CertificateInfo(
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        subject_country=country_of(cert.subject),
        subject_organization=_organization_of(cert.subject),
        issuer_country=country_of(cert.issuer),
        issuer_organization=_organization_of(cert.issuer),
        serial_number=format(cert.serial_number, "x"),
        not_before=cert.not_valid_before_utc.isoformat(),
        not_after=cert.not_valid_after_utc.isoformat(),
        key_type=key_type(cert),
        modulus_bits=key.key_size if is_rsa else None,
        exponent=key.public_numbers().e if is_rsa else None,
        authority_key_id=_bhex(get_aki_keyid(cert)),
        subject_key_id=_bhex(get_ski_keyid(cert)),
    )


# ----- Signatures -----

def verify_signature_with_key(
    cert_to_verify: x509.Certificate, issuer_public_key: CertificatePublicKeyTypes
) -> bool:
    """
    Check the certificate's signature against an issuer key.

    RSA PKCS#1 v1.5, RSA-PSS (parameters taken from the certificate) and
    ECDSA are supported. A bad signature, or a key type that cannot have
    produced it, is reported as False.
    """
    try:
        sig_hash_algo = cert_to_verify.signature_hash_algorithm
        if isinstance(issuer_public_key, ec.EllipticCurvePublicKey):
            issuer_public_key.verify(
                cert_to_verify.signature,
                cert_to_verify.tbs_certificate_bytes,
                ec.ECDSA(sig_hash_algo),
            )
            return True

        if isinstance(issuer_public_key, rsa.RSAPublicKey):
            params = cert_to_verify.signature_algorithm_parameters
            if isinstance(params, padding.PSS):
                logger.debug("Attempting RSA-PSS verification path.")
                pad = params
            elif isinstance(params, padding.PKCS1v15):
                pad = params
            else:
                logger.debug(f"Signature parameters {params!r} do not fit an RSA issuer key.")
                return False
            issuer_public_key.verify(
                cert_to_verify.signature,
                cert_to_verify.tbs_certificate_bytes,
                pad,
                sig_hash_algo,
            )
            return True

        logger.error(f"Unsupported issuer key type for verification: {type(issuer_public_key)}")
        return False
    except InvalidSignature:
        logger.debug("InvalidSignature: certificate signature verification failed.")
        return False
    except (UnsupportedAlgorithm, TypeError) as e:
        logger.debug(f"Signature algorithm does not match issuer key: {e}")
        return False


def verify_certificate(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """True iff `cert`'s signature verifies under `issuer`'s public key."""
    return verify_signature_with_key(cert, issuer.public_key())


@dataclass(frozen=True)
class ChainVerificationResult:
    """DS certificate vs CSCA diagnostics. `aki_ski_match` is None when either side lacks the extension."""
    signature_valid: bool
    issuer_match: bool
    aki_ski_match: Optional[bool]
    ds_cert_valid: bool
    csca_valid: bool

    @property
    def valid(self) -> bool:
        return (
            self.signature_valid
            and self.issuer_match
            and self.aki_ski_match is not False
            and self.ds_cert_valid
            and self.csca_valid
        )

    def as_dict(self) -> Dict[str, Optional[bool]]:
        return {
            "signatureValid": self.signature_valid,
            "issuerMatch": self.issuer_match,
            "akiSkiMatch": self.aki_ski_match,
            "dsCertValid": self.ds_cert_valid,
            "cscaValid": self.csca_valid,
        }


def verify_certificate_chain(
    ds_cert: x509.Certificate, csca_cert: x509.Certificate, at: Optional[datetime] = None
) -> ChainVerificationResult:
    """Run every DS -> CSCA check and report each one; never short-circuits."""
    at = at or datetime.now(timezone.utc)

    aki = get_aki_keyid(ds_cert)
    ski = get_ski_keyid(csca_cert)
    aki_ski_match = None if aki is None or ski is None else aki == ski

    result = ChainVerificationResult(
        signature_valid=verify_certificate(ds_cert, csca_cert),
        issuer_match=normalize_dn(ds_cert.issuer) == normalize_dn(csca_cert.subject),
        aki_ski_match=aki_ski_match,
        ds_cert_valid=is_within_validity(ds_cert, at),
        csca_valid=is_within_validity(csca_cert, at),
    )
    logger.debug(f"Chain check {ds_cert.subject.rfc4514_string()} -> {csca_cert.subject.rfc4514_string()}: {result}")
    return result


# ----- Trust store lookup -----

def filter_by_country(certs: List[x509.Certificate], country: str) -> List[x509.Certificate]:
    """CSCA certificates whose subject country matches (case-insensitive)."""
    wanted = country.upper()
    return [c for c in certs if (country_of(c.subject) or "").upper() == wanted]


def find_issuer_candidates(dsc_cert: x509.Certificate, csca_certs: List[x509.Certificate]) -> List[x509.Certificate]:
    """
    Order the trust store by how likely each CSCA is to have issued `dsc_cert`.

    1. subject == DSC issuer and SKI == DSC AKI
    2. subject == DSC issuer
    3. SKI == DSC AKI (key rollover under a new name)
    4. everything else
    """
    issuer_name = dsc_cert.issuer
    aki_keyid = get_aki_keyid(dsc_cert)

    subj_matches = [c for c in csca_certs if c.subject == issuer_name]
    ski_map = {id(c): get_ski_keyid(c) for c in csca_certs}

    logger.debug(
        f"Issuer matching: dsc_issuer={issuer_name.rfc4514_string()}, dsc_aki={_bhex(aki_keyid)}, subj_matches={len(subj_matches)}"
    )

    candidates: List[x509.Certificate] = []
    seen = set()

    def _add(c: x509.Certificate) -> None:
        if id(c) not in seen:
            seen.add(id(c))
            candidates.append(c)

    if aki_keyid:
        for c in subj_matches:
            if ski_map[id(c)] == aki_keyid:
                _add(c)
    for c in subj_matches:
        _add(c)
    if aki_keyid:
        for c in csca_certs:
            if ski_map[id(c)] == aki_keyid:
                _add(c)
    for c in csca_certs:
        _add(c)

    return candidates
