# /routers/icao.py
"""ICAO root-of-trust endpoints: Master List authenticity and the CSCA Merkle tree."""
import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from dependencies import get_icao_tree, get_master_list_bytes
from models import MerkleProofRequest
from routers.errors import to_http_exception
from routers.verify import cert_from_request
from tools.errors import PassportDataError
from tools.icao_master_list import extract_master_list_certificates, verify_master_list
from tools.merkle import ICAOMerkleTree, certificate_leaf

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/icao")


@router.get("/master-list", summary="Authenticity report for the configured ICAO Master List")
async def master_list(ml_bytes: bytes = Depends(get_master_list_bytes)):
    try:
        result = await run_in_threadpool(verify_master_list, ml_bytes)
        certs = extract_master_list_certificates(ml_bytes)
    except PassportDataError as e:
        raise to_http_exception(e)
    return {**result.as_dict(), **certs}


@router.post("/merkle-proof", summary="Inclusion proof of a CSCA in the ICAO Merkle tree")
async def merkle_proof(req: MerkleProofRequest, tree: ICAOMerkleTree = Depends(get_icao_tree)):
    try:
        cert = cert_from_request(req.cert)
    except PassportDataError as e:
        raise to_http_exception(e)
    return {
        "root": tree.root_hex(),
        "leaf": "0x" + certificate_leaf(cert).hex(),
        "member": tree.contains(cert),
        "proof": tree.get_proof_hex(cert),
    }
