# /models.py
from pydantic import BaseModel, Field
from typing import Optional, List


class VerifyRequest(BaseModel):
    """
    Request model for /verify endpoint.

    Fields:
    - dg1: DG1 bytes, Base64 or hex (required)
    - sod: EF.SOD bytes, Base64 or hex (required)
    """
    dg1: str
    sod: str


class ChainRequest(BaseModel):
    """DS certificate and candidate CSCA, PEM text or Base64/hex DER."""
    dsCert: str
    cscaCert: str


class MerkleProofRequest(BaseModel):
    cert: str


class LightInputsRequest(BaseModel):
    dg1: str
    skIdentity: Optional[str] = None


class FullInputsRequest(BaseModel):
    dg1: str
    sod: str
    dsCert: Optional[str] = None
    skIdentity: Optional[str] = None


class VoteCalldataRequest(BaseModel):
    proposalId: int = Field(ge=0)
    selectedOptions: List[int]
    totalOptions: int = Field(gt=0, le=256)
    nullifier: str
    citizenship: str = Field(min_length=3, max_length=3)
    identityCreationTimestamp: int = Field(ge=0)
