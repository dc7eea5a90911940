# /tools/certificate_key.py
"""
Certificate key and certificates-SMT root as the full circuit computes them.

The DS certificate's RSA modulus is split into 15 little-endian 64-bit limbs,
packed three at a time into field elements and hashed with Poseidon5. The
registry is a sparse Merkle tree holding that single key, so its root is the
SMT leaf hash Poseidon3(key, key, 1).
"""
from __future__ import annotations

import logging
from typing import List, Sequence, Union

from cryptography import x509

from tools.bits import reconstruct_from_chunks, split_to_chunks
from tools.certificates import get_rsa_modulus, load_certificate
from tools.constants import (
    CERT_KEY_LIMB_BITS,
    CERT_KEY_LIMB_COUNT,
    PK_CHUNK_BITS,
)
from tools.poseidon import poseidon

logger = logging.getLogger(__name__)

CertificateInput = Union[x509.Certificate, bytes, str]
_LOW_BITS_MASK = (1 << (CERT_KEY_LIMB_BITS * CERT_KEY_LIMB_COUNT)) - 1


def _modulus(cert: CertificateInput) -> int:
    if not isinstance(cert, x509.Certificate):
        cert = load_certificate(cert)
    return get_rsa_modulus(cert)


def pack_modulus(modulus: int) -> List[int]:
    """
    Low 960 bits of the modulus as 15 x 64-bit limbs, packed into 5 values of
    limb[3i]*2^128 + limb[3i+1]*2^64 + limb[3i+2]. Higher bits are not hashed.
    """
    limbs = split_to_chunks(modulus & _LOW_BITS_MASK, CERT_KEY_LIMB_BITS, CERT_KEY_LIMB_COUNT)
    return [
        (limbs[3 * i] << 128) + (limbs[3 * i + 1] << 64) + limbs[3 * i + 2]
        for i in range(CERT_KEY_LIMB_COUNT // 3)
    ]


def compute_certificate_key(cert: CertificateInput) -> int:
    """Poseidon5 over the packed modulus of the DS certificate."""
    return poseidon(pack_modulus(_modulus(cert)))


def smt_hash1(key: int, value: int) -> int:
    """Sparse Merkle tree leaf hash."""
    return poseidon([key, value, 1])


def compute_certificates_root(cert: CertificateInput) -> int:
    """Root of a certificates SMT that contains only this certificate."""
    key = compute_certificate_key(cert)
    root = smt_hash1(key, key)
    logger.debug(f"certificates root for key {hex(key)}: {hex(root)}")
    return root


def extract_pk_hash(pk_chunks: Sequence[int]) -> int:
    """
    Certificate key recomputed from the 120-bit public-key limbs the
    registration circuit receives.
    """
    modulus = reconstruct_from_chunks(pk_chunks[:8], PK_CHUNK_BITS)
    return poseidon(pack_modulus(modulus))


def compute_id_state_root(
    passport_hash: int,
    pk_identity_hash: int,
    dg1_commitment: int,
    identity_counter: int = 0,
    timestamp: int = 0,
) -> int:
    """
    Root of an identity-state SMT holding a single registration: the leaf sits
    at Poseidon(passport_hash, pk_identity_hash) and stores
    Poseidon(dg1_commitment, identity_counter, timestamp).
    """
    position = poseidon([passport_hash, pk_identity_hash])
    value = poseidon([dg1_commitment, identity_counter, timestamp])
    return smt_hash1(position, value)
