import pytest

from conftest import generate_test_pki
from tools.merkle import ICAOMerkleTree, MerkleTree, certificate_leaf, keccak256, verify_proof


def test_keccak256_vector():
    assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def _leaves(n):
    return [keccak256(bytes([i])) for i in range(n)]


def test_single_leaf_tree():
    leaf = _leaves(1)[0]
    tree = MerkleTree([leaf])
    assert tree.root == leaf
    assert tree.proof(0) == []
    assert verify_proof(leaf, [], tree.root)


def test_empty_tree_rejected():
    with pytest.raises(ValueError):
        MerkleTree([])


def test_sorted_pair_root():
    a, b = _leaves(2)
    lo, hi = sorted([a, b])
    assert MerkleTree([a, b]).root == keccak256(lo + hi)
    assert MerkleTree([b, a]).root == MerkleTree([a, b]).root


def test_odd_node_is_promoted():
    a, b, c = _leaves(3)
    tree = MerkleTree([a, b, c])
    assert tree.levels[1][1] == c
    assert tree.proof(2) == [tree.levels[1][0]]


@pytest.mark.parametrize("n", [2, 3, 5, 8, 13])
def test_every_member_proof_verifies(n):
    leaves = _leaves(n)
    tree = MerkleTree(leaves)
    for i, leaf in enumerate(leaves):
        assert verify_proof(leaf, tree.proof(i), tree.root)
    assert not verify_proof(keccak256(b"outsider"), tree.proof(0), tree.root)


def test_icao_tree(pki, other_pki):
    tree = ICAOMerkleTree([pki.csca_cert, other_pki.csca_cert])
    outsider = generate_test_pki("QQ").csca_cert

    assert tree.contains(pki.csca_cert)
    assert not tree.contains(outsider)
    assert tree.get_proof(outsider) == []

    proof = tree.get_proof(pki.csca_cert)
    assert len(proof) == 1
    assert verify_proof(certificate_leaf(pki.csca_cert), proof, tree.root)
    assert tree.get_proof_hex(pki.csca_cert) == ["0x" + proof[0].hex()]
    assert tree.root_hex() == "0x" + tree.root.hex()


def test_single_certificate_tree_proof_is_empty(pki):
    tree = ICAOMerkleTree([pki.csca_cert])
    assert tree.contains(pki.csca_cert)
    assert tree.get_proof(pki.csca_cert) == []
    assert tree.root == certificate_leaf(pki.csca_cert)
