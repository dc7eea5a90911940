# /routers/circuit_inputs.py
"""Circuit input assembly endpoints."""
from typing import Optional

from fastapi import APIRouter

from models import FullInputsRequest, LightInputsRequest
from routers.errors import to_http_exception
from tools.circuit_inputs import build_full_inputs, build_light_inputs
from tools.errors import InvalidEncodingError, PassportDataError

router = APIRouter(prefix="/circuit-inputs")


def parse_field_element(value: Optional[str]) -> Optional[int]:
    """Decimal or 0x-hex integer, as the circuits' JSON inputs use."""
    if value is None:
        return None
    try:
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    except ValueError as e:
        raise InvalidEncodingError(f"Not an integer: {value!r}") from e


@router.post("/light", summary="Inputs for the 3-signal light circuit")
async def light_inputs(req: LightInputsRequest):
    try:
        inputs = build_light_inputs(req.dg1, parse_field_element(req.skIdentity))
    except PassportDataError as e:
        raise to_http_exception(e)
    return inputs.as_dict()


@router.post("/full", summary="Inputs for the 5-signal full circuit")
async def full_inputs(req: FullInputsRequest):
    try:
        inputs = build_full_inputs(req.dg1, req.sod, req.dsCert, parse_field_element(req.skIdentity))
    except PassportDataError as e:
        raise to_http_exception(e)
    return inputs.as_dict()
