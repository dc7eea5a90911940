# /tools/constants.py
"""
Domain constants shared by the passport verification and circuit tooling.

Everything here is fixed by an external consumer: ICAO Doc 9303 for the
document formats, and the deployed circuits / verifier contract for sizes.
"""
# --- Field ---
# Scalar field of BN254, the curve the circuits and the on-chain verifier use.
BN254_SCALAR_FIELD = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# --- ICAO OIDs ---
OID_LDS_SECURITY_OBJECT = "2.23.136.1.1.1"
OID_CSCA_MASTER_LIST = "2.23.136.1.1.2"
OID_RSASSA_PSS = "1.2.840.113549.1.1.10"

HASH_NAMES_BY_OID = {
    "1.3.14.3.2.26": "sha1",
    "2.16.840.1.101.3.4.2.4": "sha224",
    "2.16.840.1.101.3.4.2.1": "sha256",
    "2.16.840.1.101.3.4.2.2": "sha384",
    "2.16.840.1.101.3.4.2.3": "sha512",
}
OID_SHA256 = "2.16.840.1.101.3.4.2.1"

# --- EF tags ---
EF_SOD_TAG = 0x77
EF_DG1_TAG = 0x61
MRZ_DATA_TAG = 0x5F1F
SIGNED_ATTRS_IMPLICIT_TAG = 0xA0
DER_SET_TAG = 0x31

# --- Master List subject markers ---
ML_SIGNER_SUBJECT_MARKER = "Master List Signer"
UN_CSCA_SUBJECT_MARKERS = ("Certification Authorities", "United Nations")

# --- DG1 / MRZ (TD3) ---
DG1_TD3_LENGTH = 93
MRZ_OFFSET = 5
MRZ_LINE_LENGTH = 44

# --- Circuit sizes ---
DG1_BITS = 1024
ENCAPSULATED_CONTENT_BITS = 1536
SIGNED_ATTRIBUTES_BITS = 1024
RSA_CHUNK_BITS = 64
RSA_CHUNK_COUNT = 32
MERKLE_INCLUSION_DEPTH = 80
LIGHT_PUBLIC_SIGNALS = 3
FULL_PUBLIC_SIGNALS = 5

# Modulus packing for the certificate key: 15 limbs of 64 bits, 3 limbs per
# Poseidon input.
CERT_KEY_LIMB_BITS = 64
CERT_KEY_LIMB_COUNT = 15

# Barrett / pk-hash parameters used by the registration circuit.
PK_CHUNK_BITS = 120
PK_CHUNK_COUNT = 18
REGISTRATION_TBS_BYTES = 1200

# Query circuit: DG1 byte array size and the selector with all 18 field bits set.
QUERY_DG1_BYTES = 108
QUERY_SELECT_ALL = 0x3FFFF

SK_IDENTITY_RANDOM_BYTES = 31

# --- Voting ---
# Citizenship bitmask bit for Iran in the voting contract's whitelist.
IRAN_CITIZENSHIP_MASK = 0x20000000000000000000000000
MAX_VOTE_OPTIONS = 256
EXECUTE_SIGNATURE = "execute(bytes32,uint256,bytes,(uint256[2],uint256[2][2],uint256[2]))"
