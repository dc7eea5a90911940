# /dependencies.py
"""FastAPI dependency providers. Heavy objects are built once and cached."""
from functools import lru_cache

import config
from services.prover import CircuitArtifacts, ProofPipeline, SnarkjsProver
from tools.constants import FULL_PUBLIC_SIGNALS, LIGHT_PUBLIC_SIGNALS
from tools.epassport_verifier import EPassportVerifier
from tools.errors import TrustStoreUnavailableError
from tools.merkle import ICAOMerkleTree


@lru_cache(maxsize=1)
def get_verifier() -> EPassportVerifier:
    """Trust store from the Master List extraction plus manually added CSCAs."""
    certs = EPassportVerifier.load_csca_from_dir(config.get_csca_dir())
    certs.extend(EPassportVerifier.load_csca_from_dir(config.ADDITIONAL_CSCA_DIR))
    if not certs:
        raise TrustStoreUnavailableError(
            "CSCA trust store is empty",
            remediation="Populate CSCA_DIR or provide a Master List at ICAO_MASTER_LIST_PATH.",
        )
    return EPassportVerifier(certs)


@lru_cache(maxsize=1)
def get_icao_tree() -> ICAOMerkleTree:
    return ICAOMerkleTree(get_verifier().csca_certs)


def get_master_list_bytes() -> bytes:
    try:
        with open(config.ICAO_MASTER_LIST_PATH, "rb") as f:
            return f.read()
    except FileNotFoundError:
        raise TrustStoreUnavailableError(
            f"ICAO Master List not found at {config.ICAO_MASTER_LIST_PATH}",
            remediation="Download the Master List from the ICAO PKD and set ICAO_MASTER_LIST_PATH.",
        ) from None


@lru_cache(maxsize=1)
def get_light_pipeline() -> ProofPipeline:
    return ProofPipeline(
        SnarkjsProver(),
        CircuitArtifacts.from_dir(config.CIRCUITS_DIR, config.LIGHT_CIRCUIT_NAME),
        LIGHT_PUBLIC_SIGNALS,
    )


@lru_cache(maxsize=1)
def get_full_pipeline() -> ProofPipeline:
    return ProofPipeline(
        SnarkjsProver(),
        CircuitArtifacts.from_dir(config.CIRCUITS_DIR, config.FULL_CIRCUIT_NAME),
        FULL_PUBLIC_SIGNALS,
    )
