# /tools/extract_csca.py
"""
CSCA extraction from an ICAO Master List (.ml).

The Master List eContent is CscaMasterList ::= SEQUENCE { version, certList
SET OF Certificate }. Extraction does not check the Master List signature;
tools.icao_master_list does that.
"""
from __future__ import annotations

import logging
import os
from typing import List

from asn1crypto import cms, core as asn1

from tools.cms import parse_signed_data
from tools.constants import OID_CSCA_MASTER_LIST
from tools.der import iter_elements, read_tag
from tools.errors import CMSParseError, DERParseError

logger = logging.getLogger(__name__)


# Liberal in what we accept: CertificateChoices for cert list entries
class MasterListCertList(asn1.SetOf):
    _child_spec = cms.CertificateChoices


class CscaMasterList(asn1.Sequence):
    _fields = [
        ("version", asn1.Integer),
        ("certList", MasterListCertList),
    ]


def master_list_content(ml_bytes: bytes) -> bytes:
    """Raw CscaMasterList DER from a Master List file."""
    envelope = parse_signed_data(ml_bytes)
    if envelope.content_type_oid != OID_CSCA_MASTER_LIST:
        raise CMSParseError(
            f"eContentType {envelope.content_type_oid} is not id-icao-cscaMasterList"
        )
    return envelope.encapsulated_content


def _cert_list_bounds(content: bytes):
    outer = read_tag(content, 0)
    pos = outer.header_length
    version = read_tag(content, pos)
    pos += version.total_length
    cert_list = read_tag(content, pos)
    if cert_list.tag != 0x31:
        raise DERParseError(f"certList has tag 0x{cert_list.tag:02X}, expected SET (0x31)")
    start = pos + cert_list.header_length
    return start, start + cert_list.length


def count_csca_certificates(content: bytes) -> int:
    """Number of top-level elements in certList, counted without decoding them."""
    start, end = _cert_list_bounds(content)
    return sum(1 for _ in iter_elements(content, start, end))


def extract_csca_ders(ml_bytes: bytes) -> List[bytes]:
    """DER-encoded CSCA certificates from the Master List content."""
    csca_list = CscaMasterList.load(master_list_content(ml_bytes))
    ders: List[bytes] = []
    for cert_choice in csca_list["certList"]:
        if cert_choice.name != "certificate":
            logger.debug(f"Skipping certList entry of type {cert_choice.name}")
            continue
        ders.append(cert_choice.chosen.dump())
    logger.info(f"Extracted {len(ders)} CSCA certificates from Master List")
    return ders


def _safe_filename(s: str) -> str:
    """Create a filesystem-friendly filename from a string."""
    return "".join(c if c.isalnum() or c in ".-_" else "_" for c in s)[:200]


def save_ders_to_dir(ders: List[bytes], dest_dir: str, prefix: str = "csca") -> int:
    """
    Persist DER certificates to dest_dir with stable filenames.
    Returns the number of certificates written.
    """
    from cryptography import x509

    os.makedirs(dest_dir, exist_ok=True)
    count = 0
    for idx, cert_der in enumerate(ders, 1):
        try:
            cert = x509.load_der_x509_certificate(cert_der)
        except (ValueError, x509.InvalidVersion) as e:
            logger.warning(f"Skipping CSCA certificate #{idx}: {e}")
            continue
        subj_safe = _safe_filename(cert.subject.rfc4514_string())
        out_name = f"{prefix}_{idx:04d}_{subj_safe}.der"
        with open(os.path.join(dest_dir, out_name), "wb") as cf:
            cf.write(cert_der)
        count += 1
    return count


def extract_master_list_to_dir(ml_path: str, dest_dir: str) -> int:
    """Extract the CSCA certificates of a Master List file into dest_dir."""
    with open(ml_path, "rb") as f:
        ml_bytes = f.read()
    return save_ders_to_dir(extract_csca_ders(ml_bytes), dest_dir, prefix="csca")
