# /routers/verify.py
"""
FastAPI endpoints for ePassport Passive Authentication.
The heavy verification logic lives in tools.epassport_verifier.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from dependencies import get_verifier
from models import ChainRequest, VerifyRequest
from routers.errors import to_http_exception
from tools.certificates import describe_certificate, load_certificate, verify_certificate_chain
from tools.epassport_verifier import EPassportVerifier, decode_binary_input
from tools.errors import EnvironmentSetupError, PassportDataError

logger = logging.getLogger(__name__)

router = APIRouter()


def cert_from_request(value: str):
    if value.lstrip().startswith("-----BEGIN"):
        return load_certificate(value)
    return load_certificate(decode_binary_input(value))


@router.post("/verify", summary="Verify DG1 and SOD from an ePassport against the CSCA trust store")
async def verify(req: VerifyRequest, verifier: EPassportVerifier = Depends(get_verifier)):
    if not req.dg1:
        raise HTTPException(status_code=400, detail="Missing required field: dg1")
    if not req.sod:
        raise HTTPException(status_code=400, detail="Missing required field: sod")

    try:
        result = verifier.verify(req.dg1, req.sod)
    except (PassportDataError, EnvironmentSetupError) as e:
        raise to_http_exception(e)

    logger.info(f"Passive authentication result: {result['passive_authentication_passed']}")
    return result


@router.post("/verify/chain", summary="Diagnose a DS certificate against a CSCA")
async def verify_chain(req: ChainRequest):
    try:
        ds_cert = cert_from_request(req.dsCert)
        csca_cert = cert_from_request(req.cscaCert)
    except PassportDataError as e:
        raise to_http_exception(e)

    result = verify_certificate_chain(ds_cert, csca_cert)
    return {
        "valid": result.valid,
        "checks": result.as_dict(),
        "dsCert": describe_certificate(ds_cert).as_dict(),
        "cscaCert": describe_certificate(csca_cert).as_dict(),
    }
