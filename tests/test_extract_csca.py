# /tests/test_extract_csca.py
from __future__ import annotations

import os
from pathlib import Path

import pytest

from tools.extract_csca import count_csca_certificates, extract_master_list_to_dir, master_list_content
from tools.icao_master_list import verify_master_list


def _local_master_list() -> Path:
    ml_path = Path(os.getenv("ICAO_MASTER_LIST_PATH", "csca_masterlist/icao_masterlist.ml"))
    if not ml_path.exists():
        pytest.skip(f"Local Master List not found at {ml_path}")
    return ml_path


@pytest.mark.integration
def test_extract_csca_from_local_masterlist(tmp_path: Path):
    """
    Extract CSCA DER files from the local ICAO Master List and check that the
    number written matches the certList element count.
    """
    ml_path = _local_master_list()
    ml_bytes = ml_path.read_bytes()

    dest_dir = tmp_path / "certs"
    written = extract_master_list_to_dir(str(ml_path), str(dest_dir))

    der_files = sorted(p for p in dest_dir.iterdir() if p.is_file() and p.suffix.lower() == ".der")
    assert len(der_files) == written > 0
    assert written <= count_csca_certificates(master_list_content(ml_bytes))

    # Emit a brief preview to test logs
    for p in der_files[:10]:
        print("DER:", p.name)


@pytest.mark.integration
def test_local_masterlist_is_authentic():
    result = verify_master_list(_local_master_list().read_bytes())
    print("Master List:", result.as_dict())
    assert result.authentic
