# /config.py
import os
import logging

from tools.errors import TrustStoreUnavailableError

_BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"FATAL: {name} must be an integer, got {raw!r}")


# --- Environment & Ports ---
API_PORT = _env_int("API_PORT", 8000)
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- CSCA Trust Store ---
CSCA_CACHE_DIR = os.getenv("CSCA_CACHE_DIR", os.path.join(_BASE_DIR, ".csca_cache"))
ICAO_MASTER_LIST_PATH = os.getenv(
    "ICAO_MASTER_LIST_PATH", os.path.join(_BASE_DIR, "csca_masterlist", "icao_masterlist.ml")
)
# For manually added certificates of countries missing from the Master List
ADDITIONAL_CSCA_DIR = os.getenv("ADDITIONAL_CSCA_DIR", os.path.join(_BASE_DIR, "csca_additional"))

# --- Circuits & Prover ---
CIRCUITS_DIR = os.getenv("CIRCUITS_DIR", os.path.join(_BASE_DIR, "circuits"))
LIGHT_CIRCUIT_NAME = os.getenv("LIGHT_CIRCUIT_NAME", "query_identity_light")
FULL_CIRCUIT_NAME = os.getenv("FULL_CIRCUIT_NAME", "register_identity_full")
SNARKJS_BIN = os.getenv("SNARKJS_BIN", "snarkjs")
PROVER_TIMEOUT_SECONDS = _env_int("PROVER_TIMEOUT_SECONDS", 300)
PROVER_MAX_WORKERS = _env_int("PROVER_MAX_WORKERS", 2)


def get_csca_dir() -> str:
    """
    Ensures CSCA certificates are available and returns the directory path.
    Extracts from the configured ICAO Master List on first use.
    """
    env_dir = os.getenv("CSCA_DIR")
    if env_dir:
        if not os.path.isdir(env_dir):
            raise TrustStoreUnavailableError(
                f"CSCA_DIR {env_dir} is not a directory",
                remediation="Point CSCA_DIR at a directory of DER/PEM CSCA certificates.",
            )
        return env_dir

    certs_subdir = os.path.join(CSCA_CACHE_DIR, "certs")
    if os.path.isdir(certs_subdir) and os.listdir(certs_subdir):
        return certs_subdir

    if not os.path.isfile(ICAO_MASTER_LIST_PATH):
        raise TrustStoreUnavailableError(
            f"ICAO Master List not found at {ICAO_MASTER_LIST_PATH}",
            remediation="Download the ICAO PKD Master List and set ICAO_MASTER_LIST_PATH, or set CSCA_DIR.",
        )

    logging.info(f"Extracting CSCA certificates from master list: {ICAO_MASTER_LIST_PATH}")
    from tools.extract_csca import extract_master_list_to_dir

    count = extract_master_list_to_dir(ICAO_MASTER_LIST_PATH, certs_subdir)
    logging.info(f"Extracted {count} CSCA certificates from master list")
    return certs_subdir
