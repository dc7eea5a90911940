# /tools/merkle.py
"""
Keccak256 Merkle tree over CSCA public keys, matching the on-chain verifier
(OpenZeppelin MerkleProof with sorted pairs, merkletreejs `sortPairs`).
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Union

from Crypto.Hash import keccak
from cryptography import x509

from tools.certificates import load_certificate, spki_der


def keccak256(data: bytes) -> bytes:
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


class MerkleTree:
    """
    Deterministic Merkle tree:
      - Leaves are bytes already hashed.
      - At each level, pairs (a, b) are combined as keccak256(sort(a, b) concat).
      - An unpaired last element is carried up unchanged.
    """
    def __init__(self, leaf_hashes: Sequence[bytes]) -> None:
        if not leaf_hashes:
            raise ValueError("Cannot build Merkle tree with zero leaves")
        self.levels: List[List[bytes]] = []
        self._build(list(leaf_hashes))

    @staticmethod
    def _combine(a: bytes, b: bytes) -> bytes:
        return keccak256((a + b) if a <= b else (b + a))

    def _build(self, leaf_hashes: List[bytes]) -> None:
        current = leaf_hashes
        self.levels = [current]
        while len(current) > 1:
            next_level: List[bytes] = []
            for i in range(0, len(current), 2):
                if i + 1 < len(current):
                    next_level.append(self._combine(current[i], current[i + 1]))
                else:
                    next_level.append(current[i])
            current = next_level
            self.levels.append(current)

    @property
    def leaves(self) -> List[bytes]:
        return self.levels[0]

    @property
    def root(self) -> bytes:
        return self.levels[-1][0]

    def root_hex(self) -> str:
        return "0x" + self.root.hex()

    def index_of(self, leaf: bytes) -> Optional[int]:
        try:
            return self.leaves.index(leaf)
        except ValueError:
            return None

    def proof(self, leaf_index: int) -> List[bytes]:
        """Sibling hashes bottom-up; a promoted node contributes no sibling."""
        proof: List[bytes] = []
        idx = leaf_index
        for level in self.levels[:-1]:
            sibling = idx + 1 if idx % 2 == 0 else idx - 1
            if sibling < len(level):
                proof.append(level[sibling])
            idx //= 2
        return proof


def verify_proof(leaf: bytes, proof: Iterable[bytes], root: bytes) -> bool:
    """Recompute the root from a leaf and its sorted-pair proof."""
    computed = leaf
    for sibling in proof:
        computed = MerkleTree._combine(computed, sibling)
    return computed == root


CertificateInput = Union[x509.Certificate, bytes, str]


def _cert(cert: CertificateInput) -> x509.Certificate:
    return cert if isinstance(cert, x509.Certificate) else load_certificate(cert)


def certificate_leaf(cert: CertificateInput) -> bytes:
    """keccak256 of the certificate's SubjectPublicKeyInfo DER."""
    return keccak256(spki_der(_cert(cert)))


class ICAOMerkleTree:
    """Merkle tree of CSCA certificates keyed by their public keys."""

    def __init__(self, csca_certs: Sequence[CertificateInput]) -> None:
        self.tree = MerkleTree([certificate_leaf(c) for c in csca_certs])

    @property
    def root(self) -> bytes:
        return self.tree.root

    def root_hex(self) -> str:
        return self.tree.root_hex()

    def contains(self, cert: CertificateInput) -> bool:
        return self.tree.index_of(certificate_leaf(cert)) is not None

    def get_proof(self, cert: CertificateInput) -> List[bytes]:
        """
        Inclusion proof for `cert`. Empty for a non-member, and also for the
        only member of a single-leaf tree; use contains() to tell them apart.
        """
        idx = self.tree.index_of(certificate_leaf(cert))
        if idx is None:
            return []
        return self.tree.proof(idx)

    def get_proof_hex(self, cert: CertificateInput) -> List[str]:
        return ["0x" + p.hex() for p in self.get_proof(cert)]
