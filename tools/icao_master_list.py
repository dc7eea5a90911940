# /tools/icao_master_list.py
"""
ICAO Master List authenticity.

Proves the top of the trust chain: the UN CSCA is self-signed, the ML Signer
certificate is signed by the UN CSCA, both are within validity, and the ML
Signer's key verifies the Master List's CMS signature.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from cryptography import x509

from tools.certificates import is_within_validity, to_pem, verify_certificate
from tools.cms import SignedDataEnvelope, parse_signed_data, verify_signed_data
from tools.constants import ML_SIGNER_SUBJECT_MARKER, OID_CSCA_MASTER_LIST, UN_CSCA_SUBJECT_MARKERS
from tools.extract_csca import count_csca_certificates
from tools.errors import CMSParseError, DERParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MasterListAuthenticity:
    signature_valid: bool
    signer_cert_valid: bool
    un_csca_self_signed: bool
    signer_cert_within_validity: bool
    un_csca_within_validity: bool
    signer_subject: Optional[str]
    signer_issuer: Optional[str]
    csca_count: int

    @property
    def authentic(self) -> bool:
        return (
            self.signature_valid
            and self.signer_cert_valid
            and self.un_csca_self_signed
            and self.signer_cert_within_validity
            and self.un_csca_within_validity
        )

    def as_dict(self) -> Dict[str, object]:
        return {
            "authentic": self.authentic,
            "signatureValid": self.signature_valid,
            "signerCertValid": self.signer_cert_valid,
            "unCSCASelfSigned": self.un_csca_self_signed,
            "signerCertWithinValidity": self.signer_cert_within_validity,
            "unCSCAWithinValidity": self.un_csca_within_validity,
            "signerSubject": self.signer_subject,
            "signerIssuer": self.signer_issuer,
            "cscaCount": self.csca_count,
        }


def _subject(cert: x509.Certificate) -> str:
    return cert.subject.rfc4514_string()


def _find_certificates(envelope: SignedDataEnvelope) -> Tuple[Optional[x509.Certificate], Optional[x509.Certificate]]:
    signer = next((c for c in envelope.certificates if ML_SIGNER_SUBJECT_MARKER in _subject(c)), None)
    root = next(
        (c for c in envelope.certificates if all(m in _subject(c) for m in UN_CSCA_SUBJECT_MARKERS)),
        None,
    )
    return signer, root


def _parse_master_list(ml_bytes: bytes) -> SignedDataEnvelope:
    envelope = parse_signed_data(ml_bytes)
    if envelope.content_type_oid != OID_CSCA_MASTER_LIST:
        raise CMSParseError(f"eContentType {envelope.content_type_oid} is not a CSCA Master List")
    return envelope


def extract_master_list_certificates(ml_bytes: bytes) -> Dict[str, Optional[str]]:
    """PEM of the ML Signer and UN CSCA certificates embedded in the Master List."""
    signer, root = _find_certificates(_parse_master_list(ml_bytes))
    return {
        "signerPem": to_pem(signer) if signer else None,
        "unCSCAPem": to_pem(root) if root else None,
    }


def verify_master_list(ml_bytes: bytes, at: Optional[datetime] = None) -> MasterListAuthenticity:
    """
    Run every Master List check and report each one. Structural problems
    raise CMSParseError; failed checks are reported as False.
    """
    at = at or datetime.now(timezone.utc)
    envelope = _parse_master_list(ml_bytes)
    signer, root = _find_certificates(envelope)

    try:
        csca_count = count_csca_certificates(envelope.encapsulated_content)
    except DERParseError as e:
        raise CMSParseError(f"Master List content is malformed: {e}") from e

    if signer is None:
        logger.warning("Master List does not embed an ML Signer certificate")
    if root is None:
        logger.warning("Master List does not embed the UN CSCA certificate")

    result = MasterListAuthenticity(
        signature_valid=signer is not None and verify_signed_data(envelope, signer, default_hash="sha256"),
        signer_cert_valid=signer is not None and root is not None and verify_certificate(signer, root),
        un_csca_self_signed=root is not None and verify_certificate(root, root),
        signer_cert_within_validity=signer is not None and is_within_validity(signer, at),
        un_csca_within_validity=root is not None and is_within_validity(root, at),
        signer_subject=_subject(signer) if signer else None,
        signer_issuer=signer.issuer.rfc4514_string() if signer else None,
        csca_count=csca_count,
    )
    logger.info(f"Master List verified: authentic={result.authentic}, cscaCount={csca_count}")
    return result
