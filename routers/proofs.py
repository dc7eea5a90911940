# /routers/proofs.py
"""
Proof generation endpoints. Proving is CPU and memory heavy, so it runs in
the threadpool and returns the proof, public signals and on-chain proof points.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from dependencies import get_full_pipeline, get_light_pipeline
from models import FullInputsRequest, LightInputsRequest
from routers.circuit_inputs import parse_field_element
from routers.errors import to_http_exception
from services.prover import ProofPipeline, ProofResult
from tools.circuit_inputs import build_full_inputs, build_light_inputs
from tools.errors import EnvironmentSetupError, PassportDataError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proofs")


def _prove_and_verify(pipeline: ProofPipeline, inputs) -> dict:
    result: ProofResult = pipeline.generate(inputs)
    verified = pipeline.verify(result)
    return {
        "verified": verified,
        "proof": result.proof.to_snarkjs(),
        "publicSignals": result.public_signals,
        "proofPoints": result.proof_points.as_dict(),
    }


@router.post("/light", summary="Generate and verify a light-circuit proof")
async def light_proof(req: LightInputsRequest, pipeline: ProofPipeline = Depends(get_light_pipeline)):
    try:
        inputs = build_light_inputs(req.dg1, parse_field_element(req.skIdentity))
        return await run_in_threadpool(_prove_and_verify, pipeline, inputs)
    except (PassportDataError, EnvironmentSetupError) as e:
        raise to_http_exception(e)


@router.post("/full", summary="Generate and verify a full-circuit proof")
async def full_proof(req: FullInputsRequest, pipeline: ProofPipeline = Depends(get_full_pipeline)):
    try:
        inputs = build_full_inputs(req.dg1, req.sod, req.dsCert, parse_field_element(req.skIdentity))
        return await run_in_threadpool(_prove_and_verify, pipeline, inputs)
    except (PassportDataError, EnvironmentSetupError) as e:
        raise to_http_exception(e)
