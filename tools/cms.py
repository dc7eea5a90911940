# /tools/cms.py
"""
CMS SignedData (RFC 5652) envelope extraction for EF.SOD and Master Lists.

The envelope is decoded once with asn1crypto into a typed object; callers
work with plain bytes and cryptography certificates from there on.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from asn1crypto import cms, core as asn1
from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature

from tools.constants import DER_SET_TAG, HASH_NAMES_BY_OID, OID_RSASSA_PSS, SIGNED_ATTRS_IMPLICIT_TAG
from tools.der import read_tag
from tools.errors import CMSParseError, DERParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignerInfoData:
    digest_algorithm_oid: str
    signature_algorithm_oid: str
    signature_algorithm_name: str
    signature: bytes
    # Original [0] IMPLICIT encoding, first byte 0xA0. None when absent.
    signed_attributes: Optional[bytes]
    message_digest: Optional[bytes] = None
    pss_hash_oid: Optional[str] = None
    pss_salt_length: Optional[int] = None

    def signed_attributes_for_verification(self) -> Optional[bytes]:
        """signedAttrs as signed: the [0] tag replaced by SET OF (0x31)."""
        if self.signed_attributes is None:
            return None
        return bytes([DER_SET_TAG]) + self.signed_attributes[1:]


@dataclass(frozen=True)
class SignedDataEnvelope:
    content_type_oid: str
    encapsulated_content: bytes
    signer_info: SignerInfoData
    certificates: List[x509.Certificate] = field(default_factory=list)


def _content_bytes(content: asn1.Asn1Value) -> bytes:
    """
    Raw eContent bytes. Octet strings give their value directly; anything
    that asn1crypto already parsed into a structure is re-serialized and its
    DER header stripped.
    """
    native = content.native
    if isinstance(native, (bytes, bytearray)):
        return bytes(native)
    dumped = content.untag().dump() if hasattr(content, "untag") else content.dump()
    header = read_tag(dumped, 0)
    if header.tag == 0x04:
        return dumped[header.header_length:header.total_length]
    return dumped


def _find_signed_attributes(signer_info_der: bytes) -> Optional[bytes]:
    """
    Walk SignerInfo ::= SEQUENCE { version, sid, digestAlgorithm,
    signedAttrs [0] IMPLICIT OPTIONAL, ... } and return the raw signedAttrs.
    """
    outer = read_tag(signer_info_der, 0)
    pos = outer.header_length
    for _ in range(3):  # version, sid, digestAlgorithm
        pos += read_tag(signer_info_der, pos).total_length
    header = read_tag(signer_info_der, pos)
    if header.tag != SIGNED_ATTRS_IMPLICIT_TAG:
        # Next element is signatureAlgorithm (SEQUENCE): attributes are absent.
        if header.tag == 0x30:
            return None
        raise CMSParseError(f"Unexpected tag 0x{header.tag:02X} where signedAttrs [0] was expected")
    return bytes(signer_info_der[pos:pos + header.total_length])


def _load_certificates(signed_data: cms.SignedData) -> List[x509.Certificate]:
    certs: List[x509.Certificate] = []
    certs_field = signed_data["certificates"]
    if certs_field.native is None:
        return certs
    for choice in certs_field:
        if choice.name != "certificate":
            logger.debug(f"Skipping non-X.509 certificate choice: {choice.name}")
            continue
        certs.append(x509.load_der_x509_certificate(choice.chosen.dump()))
    return certs


def _signer_info(si: cms.SignerInfo) -> SignerInfoData:
    signed_attrs = _find_signed_attributes(si.dump())

    message_digest = None
    if signed_attrs is not None:
        for attr in si["signed_attrs"]:
            if attr["type"].native == "message_digest":
                message_digest = attr["values"][0].native

    sig_alg = si["signature_algorithm"]
    pss_hash_oid = None
    pss_salt_length = None
    if sig_alg["algorithm"].native == "rsassa_pss":
        params = sig_alg["parameters"]
        if params.native is not None:
            pss_hash_oid = params["hash_algorithm"]["algorithm"].dotted
            pss_salt_length = params["salt_length"].native

    return SignerInfoData(
        digest_algorithm_oid=si["digest_algorithm"]["algorithm"].dotted,
        signature_algorithm_oid=sig_alg["algorithm"].dotted,
        signature_algorithm_name=str(sig_alg["algorithm"].native),
        signature=si["signature"].native,
        signed_attributes=signed_attrs,
        message_digest=message_digest,
        pss_hash_oid=pss_hash_oid,
        pss_salt_length=pss_salt_length,
    )


def parse_signed_data(data: bytes) -> SignedDataEnvelope:
    """
    Decode a ContentInfo(SignedData). The ICAO EF wrapper, if any, must be
    stripped by the caller. Raises CMSParseError on any structural problem.
    """
    try:
        content_info = cms.ContentInfo.load(bytes(data))
        if content_info["content_type"].native != "signed_data":
            raise CMSParseError(
                f"ContentInfo carries {content_info['content_type'].native}, not signed_data"
            )
        signed_data = content_info["content"]
        encap = signed_data["encap_content_info"]
        content = encap["content"]
        if content.native is None:
            raise CMSParseError("SignedData has no encapsulated content")

        signer_infos = signed_data["signer_infos"]
        if len(signer_infos) == 0:
            raise CMSParseError("SignedData has no SignerInfo")

        envelope = SignedDataEnvelope(
            content_type_oid=encap["content_type"].dotted,
            encapsulated_content=_content_bytes(content),
            signer_info=_signer_info(signer_infos[0]),
            certificates=_load_certificates(signed_data),
        )
    except CMSParseError:
        raise
    except (ValueError, TypeError, KeyError, DERParseError, x509.InvalidVersion) as e:
        raise CMSParseError(f"Malformed CMS SignedData: {e}") from e

    logger.debug(
        f"Parsed SignedData: content_type={envelope.content_type_oid}, "
        f"econtent={len(envelope.encapsulated_content)} bytes, certs={len(envelope.certificates)}"
    )
    return envelope


# ----- Signature verification -----

def hash_name_for(oid: str, default: Optional[str] = None) -> Optional[str]:
    return HASH_NAMES_BY_OID.get(oid, default)


def crypto_hash(name: str) -> hashes.HashAlgorithm:
    return getattr(hashes, name.upper())()


def digest(name: str, data: bytes) -> bytes:
    return hashlib.new(name, data).digest()


def _ecdsa_der(signature: bytes) -> bytes:
    """Accept both DER and plain r||s (BSI TR-03111) ECDSA signatures."""
    try:
        decode_dss_signature(signature)
        return signature
    except ValueError:
        half = len(signature) // 2
        if not half or len(signature) % 2:
            return signature
        r = int.from_bytes(signature[:half], "big")
        s = int.from_bytes(signature[half:], "big")
        return encode_dss_signature(r, s)


def verify_signed_data(
    envelope: SignedDataEnvelope, signer_cert: x509.Certificate, default_hash: Optional[str] = None
) -> bool:
    """
    Verify the first SignerInfo against `signer_cert`.

    The signature covers the signedAttrs (tag-corrected) when present,
    otherwise the eContent itself. With signedAttrs, the messageDigest
    attribute must also equal the digest of the eContent. Returns False for
    an invalid signature, a wrong key or an unsupported algorithm.
    """
    si = envelope.signer_info
    hash_name = hash_name_for(si.digest_algorithm_oid, default_hash)
    if hash_name is None:
        logger.warning(f"Unsupported digest algorithm {si.digest_algorithm_oid}")
        return False

    signed_bytes = si.signed_attributes_for_verification()
    if signed_bytes is None:
        signed_bytes = envelope.encapsulated_content
    elif si.message_digest is not None:
        if si.message_digest != digest(hash_name, envelope.encapsulated_content):
            logger.debug("messageDigest attribute does not match encapsulated content")
            return False

    key = signer_cert.public_key()
    try:
        if isinstance(key, rsa.RSAPublicKey):
            if si.signature_algorithm_oid == OID_RSASSA_PSS:
                pss_hash = crypto_hash(hash_name_for(si.pss_hash_oid or "", hash_name))
                pad = padding.PSS(mgf=padding.MGF1(pss_hash), salt_length=padding.PSS.AUTO)
                key.verify(si.signature, signed_bytes, pad, pss_hash)
            else:
                key.verify(si.signature, signed_bytes, padding.PKCS1v15(), crypto_hash(hash_name))
            return True
        if isinstance(key, ec.EllipticCurvePublicKey):
            key.verify(_ecdsa_der(si.signature), signed_bytes, ec.ECDSA(crypto_hash(hash_name)))
            return True
        logger.warning(f"Unsupported signer key type: {type(key).__name__}")
        return False
    except InvalidSignature:
        logger.debug("InvalidSignature: SignedData signature verification failed.")
        return False
    except (UnsupportedAlgorithm, ValueError, TypeError) as e:
        logger.debug(f"SignedData signature could not be checked: {e}")
        return False
