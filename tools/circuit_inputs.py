# /tools/circuit_inputs.py
"""
Circuit input builders.

Light circuit (3 public signals): raw DG1 bits and an identity secret.
Full circuit (5 public signals): SHA-padded DG1, LDS content and signed
attributes as bit arrays, the DS key and SOD signature as 64-bit limbs, and
the certificates SMT root.
Registration circuit: a certificate's TBS bytes with its signature and the
issuer key as 120-bit limbs plus the Barrett parameter.
Query circuit: the registered identity's hashes, the id-state root and the
voting filters.
Every array has a fixed size; anything that does not fit raises
CircuitInputError instead of being silently cut.
"""
from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from cryptography import x509

from tools.bits import bytes_to_bits, compute_barrett_reduction, pad_bits, sha256_pad, split_to_chunks
from tools.certificate_key import compute_certificates_root, compute_id_state_root, extract_pk_hash, smt_hash1
from tools.certificates import get_rsa_modulus, load_certificate
from tools.constants import (
    BN254_SCALAR_FIELD,
    DG1_BITS,
    ENCAPSULATED_CONTENT_BITS,
    IRAN_CITIZENSHIP_MASK,
    MERKLE_INCLUSION_DEPTH,
    PK_CHUNK_BITS,
    PK_CHUNK_COUNT,
    QUERY_DG1_BYTES,
    QUERY_SELECT_ALL,
    REGISTRATION_TBS_BYTES,
    RSA_CHUNK_BITS,
    RSA_CHUNK_COUNT,
    SIGNED_ATTRIBUTES_BITS,
    SK_IDENTITY_RANDOM_BYTES,
)
from tools.epassport_verifier import SecurityObject, decode_binary_input, parse_sod
from tools.errors import CircuitInputError

logger = logging.getLogger(__name__)


def random_sk_identity() -> int:
    return int.from_bytes(secrets.token_bytes(SK_IDENTITY_RANDOM_BYTES), "big") % BN254_SCALAR_FIELD


def deterministic_sk_identity(encapsulated_content: bytes) -> int:
    """
    Test identity derived from the LDS content: first 62 hex digits of its
    SHA-256, reduced into the field. Anyone holding the SOD can derive it, so
    it must never stand in for a user secret.
    """
    return int(hashlib.sha256(encapsulated_content).hexdigest()[:62], 16) % BN254_SCALAR_FIELD


def _padded_bits(name: str, data: bytes, expected_bits: int) -> List[int]:
    bits = bytes_to_bits(sha256_pad(data))
    if len(bits) != expected_bits:
        raise CircuitInputError(
            f"{name}: {len(data)} bytes pad to {len(bits)} bits, circuit expects exactly {expected_bits}"
        )
    return bits


def _limbs(name: str, value: int, chunk_bits: int = RSA_CHUNK_BITS, num_chunks: int = RSA_CHUNK_COUNT) -> List[int]:
    try:
        return split_to_chunks(value, chunk_bits, num_chunks)
    except ValueError as e:
        raise CircuitInputError(f"{name}: {e}") from e


@dataclass(frozen=True)
class LightCircuitInputs:
    dg1: List[int]
    sk_identity: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "dg1": [str(b) for b in self.dg1],
            "skIdentity": str(self.sk_identity),
        }


@dataclass(frozen=True)
class FullCircuitInputs:
    dg1: List[int]
    sk_identity: int
    encapsulated_content: List[int]
    signed_attributes: List[int]
    pubkey: List[int]
    signature: List[int]
    slave_merkle_root: int
    slave_merkle_inclusion_branches: List[int] = field(
        default_factory=lambda: [0] * MERKLE_INCLUSION_DEPTH
    )

    def as_dict(self) -> Dict[str, object]:
        return {
            "dg1": [str(b) for b in self.dg1],
            "skIdentity": hex(self.sk_identity),
            "encapsulatedContent": [str(b) for b in self.encapsulated_content],
            "signedAttributes": [str(b) for b in self.signed_attributes],
            "pubkey": [str(c) for c in self.pubkey],
            "signature": [str(c) for c in self.signature],
            "slaveMerkleRoot": hex(self.slave_merkle_root),
            "slaveMerkleInclusionBranches": [str(b) for b in self.slave_merkle_inclusion_branches],
        }


def build_light_inputs(dg1: Union[bytes, str], sk_identity: Optional[int] = None) -> LightCircuitInputs:
    dg1_bytes = decode_binary_input(dg1)
    try:
        bits = pad_bits(bytes_to_bits(dg1_bytes), DG1_BITS)
    except ValueError as e:
        raise CircuitInputError(f"dg1: {e}") from e
    if sk_identity is None:
        sk_identity = random_sk_identity()
    return LightCircuitInputs(dg1=bits, sk_identity=sk_identity % BN254_SCALAR_FIELD)


def build_full_inputs(
    dg1: Union[bytes, str],
    sod: Union[SecurityObject, bytes, str],
    ds_cert: Optional[Union[x509.Certificate, bytes, str]] = None,
    sk_identity: Optional[int] = None,
) -> FullCircuitInputs:
    """
    Assemble full-circuit inputs from DG1, EF.SOD and the DS certificate
    (taken from the SOD when not given).
    """
    dg1_bytes = decode_binary_input(dg1)
    security_object = sod if isinstance(sod, SecurityObject) else parse_sod(sod)

    if ds_cert is None:
        ds_cert = security_object.document_signer_certificate
        if ds_cert is None:
            raise CircuitInputError("SOD carries no DS certificate and none was supplied")
    elif not isinstance(ds_cert, x509.Certificate):
        ds_cert = load_certificate(ds_cert)

    signer_info = security_object.envelope.signer_info
    signed_attributes = signer_info.signed_attributes_for_verification()
    if signed_attributes is None:
        raise CircuitInputError("SOD SignerInfo has no signedAttrs")

    encapsulated_content = security_object.encapsulated_content
    if sk_identity is None:
        sk_identity = deterministic_sk_identity(encapsulated_content)

    inputs = FullCircuitInputs(
        dg1=_padded_bits("dg1", dg1_bytes, DG1_BITS),
        sk_identity=sk_identity % BN254_SCALAR_FIELD,
        encapsulated_content=_padded_bits("encapsulatedContent", encapsulated_content, ENCAPSULATED_CONTENT_BITS),
        signed_attributes=_padded_bits("signedAttributes", signed_attributes, SIGNED_ATTRIBUTES_BITS),
        pubkey=_limbs("pubkey", get_rsa_modulus(ds_cert)),
        signature=_limbs("signature", int.from_bytes(signer_info.signature, "big")),
        slave_merkle_root=compute_certificates_root(ds_cert),
    )
    logger.debug(f"Built full circuit inputs: slaveMerkleRoot={hex(inputs.slave_merkle_root)}")
    return inputs


@dataclass(frozen=True)
class RegistrationCircuitInputs:
    tbs: List[int]
    tbs_length: int
    pk: List[int]
    reduction: List[int]
    signature: List[int]
    icao_root: int
    sk_identity: int
    inclusion_branches: List[int] = field(
        default_factory=lambda: [0] * MERKLE_INCLUSION_DEPTH
    )

    def as_dict(self) -> Dict[str, object]:
        return {
            "tbs": [str(b) for b in self.tbs],
            "pk": [str(c) for c in self.pk],
            "reduction": [str(c) for c in self.reduction],
            "signature": [str(c) for c in self.signature],
            "len": str(self.tbs_length),
            "icao_root": str(self.icao_root),
            "inclusion_branches": [str(b) for b in self.inclusion_branches],
            "sk_identity": str(self.sk_identity),
        }


def build_registration_inputs(
    cert: Union[x509.Certificate, bytes, str],
    sk_identity: Optional[int] = None,
    issuer_cert: Optional[Union[x509.Certificate, bytes, str]] = None,
    icao_root: Optional[int] = None,
    inclusion_branches: Optional[Sequence[int]] = None,
) -> RegistrationCircuitInputs:
    """
    Registration-circuit inputs for a certificate signed by `issuer_cert`.

    The circuit checks the signature over the TBS bytes with the issuer's key.
    Without an issuer the certificate's own key is used, which only verifies
    for self-signed certificates. Without an explicit root the ICAO tree is
    taken to hold just the issuer key: smt_hash1(pk_hash, pk_hash) with zero
    siblings.
    """
    if not isinstance(cert, x509.Certificate):
        cert = load_certificate(cert)
    if issuer_cert is None:
        issuer_cert = cert
    elif not isinstance(issuer_cert, x509.Certificate):
        issuer_cert = load_certificate(issuer_cert)

    tbs = cert.tbs_certificate_bytes
    if len(tbs) > REGISTRATION_TBS_BYTES:
        raise CircuitInputError(f"tbs: {len(tbs)} bytes exceed the {REGISTRATION_TBS_BYTES}-byte circuit buffer")

    modulus = get_rsa_modulus(issuer_cert)
    pk = _limbs("pk", modulus, PK_CHUNK_BITS, PK_CHUNK_COUNT)
    try:
        reduction = compute_barrett_reduction(modulus, PK_CHUNK_BITS, PK_CHUNK_COUNT)
    except ValueError as e:
        raise CircuitInputError(f"reduction: {e}") from e

    if icao_root is None:
        leaf = extract_pk_hash(pk)
        icao_root = smt_hash1(leaf, leaf)
    branches = list(inclusion_branches) if inclusion_branches is not None else [0] * MERKLE_INCLUSION_DEPTH
    if len(branches) != MERKLE_INCLUSION_DEPTH:
        raise CircuitInputError(f"inclusion_branches: got {len(branches)}, circuit expects {MERKLE_INCLUSION_DEPTH}")
    if sk_identity is None:
        sk_identity = random_sk_identity()

    inputs = RegistrationCircuitInputs(
        tbs=list(tbs) + [0] * (REGISTRATION_TBS_BYTES - len(tbs)),
        tbs_length=len(tbs),
        pk=pk,
        reduction=reduction,
        signature=_limbs("signature", int.from_bytes(cert.signature, "big"), PK_CHUNK_BITS, PK_CHUNK_COUNT),
        icao_root=icao_root,
        sk_identity=sk_identity % BN254_SCALAR_FIELD,
        inclusion_branches=branches,
    )
    logger.debug(f"Built registration circuit inputs: len={inputs.tbs_length} icao_root={hex(inputs.icao_root)}")
    return inputs


@dataclass(frozen=True)
class QueryCircuitInputs:
    event_id: int
    event_data: int
    id_state_root: int
    sk_identity: int
    pk_passport_hash: int
    dg1: List[int]
    identity_counter: int = 0
    timestamp: int = 0
    current_date: int = 0
    citizenship_mask: int = IRAN_CITIZENSHIP_MASK
    selector: int = QUERY_SELECT_ALL
    siblings: List[int] = field(
        default_factory=lambda: [0] * MERKLE_INCLUSION_DEPTH
    )

    def as_dict(self) -> Dict[str, object]:
        upper = str(BN254_SCALAR_FIELD - 1)
        return {
            "event_id": str(self.event_id),
            "event_data": str(self.event_data),
            "id_state_root": str(self.id_state_root),
            "selector": str(self.selector),
            "timestamp_lowerbound": "0",
            "timestamp_upperbound": upper,
            "timestamp": str(self.timestamp),
            "identity_count_lowerbound": "0",
            "identity_count_upperbound": upper,
            "identity_counter": str(self.identity_counter),
            "birth_date_lowerbound": "0",
            "birth_date_upperbound": upper,
            "expiration_date_lowerbound": "0",
            "expiration_date_upperbound": upper,
            "citizenship_mask": str(self.citizenship_mask),
            "sk_identity": str(self.sk_identity),
            "pk_passport_hash": str(self.pk_passport_hash),
            "dg1": [str(b) for b in self.dg1],
            "siblings": [str(s) for s in self.siblings],
            "current_date": str(self.current_date),
        }


def _output_value(value: Union[int, str]) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16) if value.lower().startswith("0x") else int(value)


def build_query_inputs(
    dg1: Union[bytes, str],
    sk_identity: int,
    registration_outputs: Sequence[Union[int, str]],
    event_id: Optional[int] = None,
    event_data: Optional[int] = None,
    citizenship_mask: int = IRAN_CITIZENSHIP_MASK,
) -> QueryCircuitInputs:
    """
    Query (voting) circuit inputs for an identity registered in an otherwise
    empty id-state tree.

    `registration_outputs` are the registration circuit's return values; the
    passport hash, DG1 commitment and identity key hash sit at positions 1-3.
    Filters are left wide open: every bound spans the field and the selector
    enables all fields. Event id and data are random when not given.
    """
    if len(registration_outputs) < 4:
        raise CircuitInputError(f"Expected at least 4 registration outputs, got {len(registration_outputs)}")
    try:
        passport_hash, dg1_commitment, pk_identity_hash = (
            _output_value(v) for v in registration_outputs[1:4]
        )
    except ValueError as e:
        raise CircuitInputError(f"registration outputs: {e}") from e

    dg1_bytes = decode_binary_input(dg1)
    if len(dg1_bytes) > QUERY_DG1_BYTES:
        raise CircuitInputError(f"dg1: {len(dg1_bytes)} bytes exceed the {QUERY_DG1_BYTES}-byte circuit buffer")

    try:
        id_state_root = compute_id_state_root(passport_hash, pk_identity_hash, dg1_commitment)
    except ValueError as e:
        raise CircuitInputError(f"id_state_root: {e}") from e

    if event_id is None:
        event_id = random_sk_identity()
    if event_data is None:
        event_data = random_sk_identity()

    return QueryCircuitInputs(
        event_id=event_id,
        event_data=event_data,
        id_state_root=id_state_root,
        sk_identity=sk_identity % BN254_SCALAR_FIELD,
        pk_passport_hash=passport_hash,
        dg1=list(dg1_bytes) + [0] * (QUERY_DG1_BYTES - len(dg1_bytes)),
        citizenship_mask=citizenship_mask,
    )
