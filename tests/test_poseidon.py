import pytest

from tools.certificate_key import (
    compute_certificate_key,
    compute_certificates_root,
    extract_pk_hash,
    pack_modulus,
    smt_hash1,
)
from tools.bits import split_to_chunks
from tools.certificates import get_rsa_modulus
from tools.constants import BN254_SCALAR_FIELD
from tools.poseidon import poseidon


@pytest.mark.parametrize(
    "inputs,expected",
    [
        ([1], 18586133768512220936620570745912940619677854269274689475585506675881198879027),
        ([1, 2], 7853200120776062878684798364095072458815029376092732009249414926327459813530),
        ([1, 2, 3], 6542985608222806190361240322586112750744169038454362455181422643027100751666),
        ([1, 2, 3, 4], 18821383157269793795438455681495246036402687001665670618754263018637548127333),
        ([1, 2, 3, 4, 5], 6183221330272524995739186171720101788151706631170188140075976616310159254464),
        ([1, 2, 3, 4, 5, 6], 20400040500897583745843009878988256314335038853985262692600694741116813247201),
    ],
)
def test_poseidon_reference_vectors(inputs, expected):
    assert poseidon(inputs) == expected


def test_poseidon_is_deterministic_and_in_field():
    a = poseidon([1, 2, 3, 4, 5])
    assert a == poseidon([1, 2, 3, 4, 5])
    assert 0 <= a < BN254_SCALAR_FIELD
    assert a != poseidon([1, 2, 3, 4, 6])


def test_poseidon_rejects_bad_input():
    with pytest.raises(ValueError):
        poseidon([])
    with pytest.raises(ValueError):
        poseidon([BN254_SCALAR_FIELD])


def test_pack_modulus_layout():
    modulus = sum(i << (64 * i) for i in range(15))
    assert pack_modulus(modulus) == [
        (3 * i << 128) + ((3 * i + 1) << 64) + (3 * i + 2) for i in range(5)
    ]


def test_pack_modulus_ignores_bits_above_960():
    low = 0xDEADBEEF
    assert pack_modulus(low) == pack_modulus(low | (1 << 2047))


def test_certificate_key_and_root(pki, other_pki):
    key = compute_certificate_key(pki.ds_cert)
    assert key == compute_certificate_key(pki.ds_cert)
    assert key != compute_certificate_key(other_pki.ds_cert)
    assert compute_certificates_root(pki.ds_cert) == smt_hash1(key, key)
    assert compute_certificates_root(pki.ds_cert) == poseidon([key, key, 1])


def test_extract_pk_hash_matches_certificate_key(pki):
    chunks = split_to_chunks(get_rsa_modulus(pki.ds_cert), 120, 18)
    assert extract_pk_hash(chunks) == compute_certificate_key(pki.ds_cert)
