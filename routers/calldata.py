# /routers/calldata.py
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from models import VoteCalldataRequest
from routers.circuit_inputs import parse_field_element
from routers.errors import to_http_exception
from tools.calldata import (
    encode_citizenship,
    encode_date_as_ascii_bytes,
    encode_user_payload,
    encode_vote_bitmasks,
)
from tools.errors import InvalidEncodingError

router = APIRouter(prefix="/calldata")


@router.post("/vote", summary="Encode a vote payload for the voting contract")
async def vote_calldata(req: VoteCalldataRequest):
    try:
        votes = encode_vote_bitmasks(req.selectedOptions, req.totalOptions)
        citizenship = encode_citizenship(req.citizenship)
        nullifier = parse_field_element(req.nullifier)
        payload = encode_user_payload(req.proposalId, votes, nullifier, citizenship, req.identityCreationTimestamp)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidEncodingError as e:
        raise to_http_exception(e)

    today = datetime.now(timezone.utc).date()
    return {
        "votes": [str(v) for v in votes],
        "citizenship": str(citizenship),
        "currentDate": str(encode_date_as_ascii_bytes(today.year, today.month, today.day)),
        "userPayload": "0x" + payload.hex(),
    }
