import base64
import binascii
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .security import MAX_ID, ValidationError, validate_hash32, validate_identity


class SignedRequest(BaseModel):
    actor: str
    issued_at: int
    nonce: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    sig_b64: str


class RegisterSupplierPayload(BaseModel):
    identity: str
    details: str = Field(default="", max_length=1000)

    @field_validator("identity")
    @classmethod
    def _identity(cls, v: str) -> str:
        try:
            return validate_identity(v)
        except ValidationError as e:
            raise ValueError(e.message) from None


class RecordReceiptPayload(BaseModel):
    item_id: int = Field(ge=0, le=MAX_ID)
    metadata: Optional[str] = None
    metadata_b64: Optional[str] = None

    @model_validator(mode="after")
    def _one_metadata(self):
        if (self.metadata is None) == (self.metadata_b64 is None):
            raise ValueError("exactly one of metadata or metadata_b64 is required")
        if self.metadata_b64 is not None:
            try:
                base64.b64decode(self.metadata_b64, validate=True)
            except binascii.Error:
                raise ValueError("metadata_b64 must be valid base64") from None
        return self

    def metadata_bytes(self) -> bytes:
        if self.metadata_b64 is not None:
            return base64.b64decode(self.metadata_b64)
        return self.metadata.encode("utf-8")


class WitnessPayload(BaseModel):
    item_id: int = Field(ge=0, le=MAX_ID)
    supplier_id: int = Field(ge=0, le=MAX_ID)
    name_hash: str

    @field_validator("name_hash")
    @classmethod
    def _name_hash(cls, v: str) -> str:
        try:
            return validate_hash32(v, "name_hash")
        except ValidationError as e:
            raise ValueError(e.message) from None


class SupplierIdResponse(BaseModel):
    supplier_id: int


class ReceiptResponse(BaseModel):
    item_id: int
    supplier_id: int
    content_hash: str
    recorded: bool
    witness_count: int


class WitnessInfoResponse(BaseModel):
    item_id: int
    witness: str
    name_hash: str
    supplier_id: int
    witnessed: bool
