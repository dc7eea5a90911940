# /tools/epassport_verifier.py
"""
Passive Authentication (ePassport) verification utility.

It performs:

1) Loading CSCA trust anchors (DER or PEM X.509 certificates)
2) Parsing the EF.SOD into a typed SecurityObject
3) Finding and validating the issuing CSCA for the DSC (AKI/SKI/Subject heuristics)
4) Verifying the SOD signature with the DSC certificate
5) Verifying DG1 hash integrity

The two document checks, verify_sod_signature and verify_dg1_hash, are plain
predicates: a document that does not verify yields False. Only input that
cannot be parsed raises.

Usage:
    from tools.epassport_verifier import EPassportVerifier
    verifier = EPassportVerifier(EPassportVerifier.load_csca_from_dir("/path/to/csca/dir"))
    result = verifier.verify(dg1_b64, sod_b64)
"""

from __future__ import annotations

import base64
import binascii
import glob
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

from cryptography import x509
from pymrtd.ef.sod import LDSSecurityObject

from tools.certificates import (
    find_issuer_candidates,
    is_within_validity,
    load_certificate,
    verify_certificate,
)
from tools.cms import SignedDataEnvelope, digest, hash_name_for, parse_signed_data, verify_signed_data
from tools.constants import EF_SOD_TAG, OID_LDS_SECURITY_OBJECT
from tools.der import strip_icao_wrapper
from tools.errors import (
    CertificateParseError,
    CMSParseError,
    DERParseError,
    InvalidEncodingError,
    SODParseError,
    TrustStoreUnavailableError,
)

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]+$")


# ----- Utility Functions -----

def _strip_base64_prefix(b64: str) -> str:
    """Drop a data URI prefix such as 'data:application/octet-stream;base64,'."""
    return b64.split(",", 1)[1] if "," in b64 else b64


def decode_binary_input(value: Union[str, bytes]) -> bytes:
    """
    Passport payloads arrive as hex (optionally 0x-prefixed, as the fixtures
    store them) or Base64 (as the mobile app sends them).
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = value.strip()
    try:
        if _HEX_RE.match(text) and len(text.removeprefix("0x")) % 2 == 0:
            return bytes.fromhex(text.removeprefix("0x"))
        return base64.b64decode(_strip_base64_prefix(text), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncodingError(str(e)) from e


# ----- Security Object -----

@dataclass(frozen=True)
class DataGroupHash:
    number: int
    hash_value: bytes


@dataclass(frozen=True)
class SecurityObject:
    """EF.SOD decoded once: LDS hashes plus the signing envelope."""
    envelope: SignedDataEnvelope
    version: int
    hash_algorithm_oid: str
    data_group_hashes: List[DataGroupHash]

    @property
    def encapsulated_content(self) -> bytes:
        return self.envelope.encapsulated_content

    @property
    def document_signer_certificate(self) -> Optional[x509.Certificate]:
        return self.envelope.certificates[0] if self.envelope.certificates else None

    def hash_for(self, dg_number: int) -> Optional[bytes]:
        for dg in self.data_group_hashes:
            if dg.number == dg_number:
                return dg.hash_value
        return None


def parse_sod(sod: Union[bytes, str]) -> SecurityObject:
    """Decode EF.SOD (with or without the 0x77 wrapper). Raises SODParseError."""
    raw = decode_binary_input(sod)
    try:
        envelope = parse_signed_data(strip_icao_wrapper(raw, EF_SOD_TAG))
    except (CMSParseError, DERParseError) as e:
        raise SODParseError(f"Failed to parse SOD: {e}") from e

    if envelope.content_type_oid != OID_LDS_SECURITY_OBJECT:
        logger.warning(f"SOD eContentType is {envelope.content_type_oid}, expected {OID_LDS_SECURITY_OBJECT}")

    try:
        lds = LDSSecurityObject.load(envelope.encapsulated_content)
        hashes = [
            DataGroupHash(
                number=int.from_bytes(dg["dataGroupNumber"].contents, "big"),
                hash_value=dg["dataGroupHashValue"].native,
            )
            for dg in lds["dataGroupHashValues"]
        ]
        security_object = SecurityObject(
            envelope=envelope,
            version=int.from_bytes(lds["version"].contents, "big"),
            hash_algorithm_oid=lds["hashAlgorithm"]["algorithm"].dotted,
            data_group_hashes=hashes,
        )
    except (ValueError, TypeError, KeyError) as e:
        raise SODParseError(f"Failed to parse LDSSecurityObject: {e}") from e

    logger.debug(
        f"SOD: hash={security_object.hash_algorithm_oid}, "
        f"data groups={[dg.number for dg in security_object.data_group_hashes]}"
    )
    return security_object


def _as_security_object(sod: Union[SecurityObject, bytes, str]) -> SecurityObject:
    return sod if isinstance(sod, SecurityObject) else parse_sod(sod)


# ----- Document checks -----

def verify_dg1_hash(sod: Union[SecurityObject, bytes, str], dg1: Union[bytes, str]) -> bool:
    """True iff hash(DG1), under the SOD's LDS hash algorithm, equals the SOD's DG1 entry."""
    security_object = _as_security_object(sod)
    dg1_bytes = decode_binary_input(dg1)

    expected = security_object.hash_for(1)
    if expected is None:
        logger.warning("No DG1 hash found in SOD")
        return False
    hash_name = hash_name_for(security_object.hash_algorithm_oid)
    if hash_name is None:
        logger.warning(f"Unsupported LDS hash algorithm {security_object.hash_algorithm_oid}")
        return False
    return digest(hash_name, dg1_bytes) == expected


def verify_sod_signature(
    sod: Union[SecurityObject, bytes, str], ds_cert: Union[x509.Certificate, bytes, str]
) -> bool:
    """True iff the SOD's SignerInfo signature verifies under `ds_cert`."""
    security_object = _as_security_object(sod)
    if not isinstance(ds_cert, x509.Certificate):
        ds_cert = load_certificate(ds_cert)
    return verify_signed_data(security_object.envelope, ds_cert)


# ----- The Main Verifier Class -----
class EPassportVerifier:
    """Encapsulates the entire Passive Authentication verification logic."""

    def __init__(self, csca_certs: Optional[List[x509.Certificate]] = None) -> None:
        self.csca_certs: List[x509.Certificate] = csca_certs or []

    @staticmethod
    def load_csca_from_dir(csca_dir: Optional[str]) -> List[x509.Certificate]:
        """Load every certificate file (DER or PEM) from a directory."""
        certs: List[x509.Certificate] = []
        if not csca_dir or not os.path.isdir(csca_dir):
            logger.warning(f"CSCA directory {csca_dir!r} is not set or not a directory.")
            return certs
        logger.info(f"Loading CSCA certificates from: {csca_dir}")
        for cert_path in sorted(glob.glob(os.path.join(csca_dir, "*.*"))):
            if cert_path.lower().endswith(".md"):
                continue
            try:
                with open(cert_path, "rb") as f:
                    certs.append(load_certificate(f.read()))
            except CertificateParseError as e:
                logger.warning(f"Could not load certificate {os.path.basename(cert_path)}: {e}")
        logger.info(f"Loaded {len(certs)} CSCA certificates.")
        return certs

    def verify(self, dg1: Union[bytes, str], sod: Union[bytes, str], at: Optional[datetime] = None) -> dict:
        """Run the full Passive Authentication workflow and report each step."""
        if not self.csca_certs:
            raise TrustStoreUnavailableError(
                "No CSCA certificates loaded for trust validation.",
                remediation="Set CSCA_DIR or ICAO_MASTER_LIST_PATH to a populated trust store.",
            )

        # --- STEP 1: Decode Inputs ---
        dg1_bytes = decode_binary_input(dg1)
        security_object = _as_security_object(sod)

        # --- STEP 2: Extract DSC ---
        dsc_cert = security_object.document_signer_certificate
        if dsc_cert is None:
            raise SODParseError("SOD does not contain a Document Signer Certificate.")
        logger.debug(f"Extracted DSC: subject={dsc_cert.subject.rfc4514_string()}, serial={dsc_cert.serial_number}")

        # --- STEP 3: Trust Chain Validation ---
        now_utc = at or datetime.now(timezone.utc)
        issuer_csca: Optional[x509.Certificate] = None
        dsc_signature_is_valid = False
        csca_is_valid = False

        for idx, cand in enumerate(find_issuer_candidates(dsc_cert, self.csca_certs)):
            if verify_certificate(dsc_cert, cand):
                issuer_csca = cand
                dsc_signature_is_valid = True
                csca_is_valid = is_within_validity(cand, now_utc)
                logger.debug(f"Selected CSCA candidate[{idx}] based on successful DSC signature verification.")
                break

        dsc_is_valid = is_within_validity(dsc_cert, now_utc)

        if issuer_csca is None:
            chain_valid = False
            chain_failure_reason = "Issuing CSCA not found in trust store or signature mismatch."
        else:
            chain_valid = csca_is_valid and dsc_is_valid and dsc_signature_is_valid
            if not csca_is_valid:
                chain_failure_reason = "CSCA certificate has expired or is not yet valid."
            elif not dsc_is_valid:
                chain_failure_reason = "DSC certificate has expired or is not yet valid."
            else:
                chain_failure_reason = None

        # --- STEP 4: Verify SOD Signature ---
        sod_signature_valid = verify_sod_signature(security_object, dsc_cert)

        # --- STEP 5: Verify DG1 Hash Integrity ---
        hash_name = hash_name_for(security_object.hash_algorithm_oid)
        expected = security_object.hash_for(1)
        dg1_matches = verify_dg1_hash(security_object, dg1_bytes)

        passive_auth_passed = chain_valid and sod_signature_valid and dg1_matches

        return {
            "passive_authentication_passed": passive_auth_passed,
            "details": {
                "trust_chain": {
                    "status": "VALID" if chain_valid else "INVALID",
                    "failure_reason": chain_failure_reason,
                    "csca_found": issuer_csca is not None,
                    "csca_subject": issuer_csca.subject.rfc4514_string() if issuer_csca else None,
                    "dsc_signature_verified_by_csca": dsc_signature_is_valid,
                    "csca_validity_period_ok": csca_is_valid,
                    "dsc_validity_period_ok": dsc_is_valid,
                },
                "sod_signature": {
                    "status": "VALID" if sod_signature_valid else "INVALID",
                    "dsc_subject": dsc_cert.subject.rfc4514_string(),
                    "dsc_serial": format(dsc_cert.serial_number, "x"),
                },
                "dg1_hash_integrity": {
                    "status": "VALID" if dg1_matches else "INVALID",
                    "hash_algorithm": hash_name,
                    "dg1_calculated_hash": digest(hash_name, dg1_bytes).hex() if hash_name else None,
                    "sod_expected_hash": expected.hex() if expected else None,
                },
            },
        }
