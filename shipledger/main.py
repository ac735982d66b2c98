import math
from typing import Type, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Path, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from . import config
from .db import SqliteDatabase, SqliteEventLog, SqliteLedgerStore, SqliteNonceStore
from .errors import AlreadyRecorded, AlreadyWitnessed, LedgerError, Unauthorized
from .events import get_event_sink
from .ledger import CheckpointLedger
from .logging_config import audit_log, configure_logging, set_request_id
from .models import (
    RecordReceiptPayload,
    ReceiptResponse,
    RegisterSupplierPayload,
    SignedRequest,
    SupplierIdResponse,
    WitnessInfoResponse,
    WitnessPayload,
)
from .rate_limit import RateLimiter
from .security import MAX_ID, AuthenticationError, InMemoryNonceStore, RequestVerifier
from .store import InMemoryLedgerStore

app = FastAPI(title="shipledger")

LEDGER = None
VERIFIER = None
write_limiter = RateLimiter(config.WRITE_RPM)

STATUS_FOR_ERROR = {
    Unauthorized: 403,
    AlreadyRecorded: 409,
    AlreadyWitnessed: 409,
}

P = TypeVar("P", bound=BaseModel)


def build_services():
    """Build the ledger and request verifier from configuration."""
    owner = config.load_owner_identity()
    if config.STORE_TYPE == "memory":
        ledger = CheckpointLedger(owner, InMemoryLedgerStore())
        nonces = InMemoryNonceStore()
    else:
        db = SqliteDatabase(config.DB_PATH)
        ledger = CheckpointLedger(owner, SqliteLedgerStore(db), event_log=SqliteEventLog(db))
        nonces = SqliteNonceStore(db)
    sink = get_event_sink()
    if sink is not None:
        ledger.events.subscribe(sink)
    verifier = RequestVerifier(nonces, config.REQUEST_MAX_AGE_SECONDS, config.MAX_CLOCK_SKEW_SECONDS)
    return ledger, verifier


@app.on_event("startup")
def _startup():
    global LEDGER, VERIFIER
    configure_logging(config.LOG_LEVEL, json_format=config.LOG_JSON)
    missing = [name for name, ok in config.validate_config().items() if not ok]
    if missing:
        raise RuntimeError(f"invalid configuration: {', '.join(missing)}")
    LEDGER, VERIFIER = build_services()


def get_ledger() -> CheckpointLedger:
    if LEDGER is None:
        raise HTTPException(503, "LEDGER_NOT_READY")
    return LEDGER


def get_verifier() -> RequestVerifier:
    if VERIFIER is None:
        raise HTTPException(503, "LEDGER_NOT_READY")
    return VERIFIER


@app.middleware("http")
async def _request_id(request: Request, call_next):
    request_id = set_request_id(request.headers.get("x-request-id"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(LedgerError)
async def _ledger_error(request: Request, exc: LedgerError):
    return JSONResponse(status_code=STATUS_FOR_ERROR.get(type(exc), 400), content=exc.to_dict())


@app.exception_handler(AuthenticationError)
async def _authentication_error(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"error": exc.code})


def _authenticate(req: SignedRequest, operation: str, verifier: RequestVerifier) -> str:
    try:
        actor = verifier.verify(req.model_dump(), operation)
    except AuthenticationError as e:
        audit_log.security_event("request_rejected", operation=operation, actor=req.actor, code=e.code)
        raise
    limit = write_limiter.check(actor)
    if not limit.allowed:
        audit_log.rate_limit_exceeded(actor, operation)
        retry_after = max(1, math.ceil(limit.retry_after))
        raise HTTPException(429, "RATE_LIMIT", headers={"Retry-After": str(retry_after)})
    return actor


def _parse(model: Type[P], payload: dict) -> P:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise HTTPException(422, [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()])


# ============================================================
# Writes
# ============================================================

@app.post("/suppliers", response_model=SupplierIdResponse)
def register_supplier(
    req: SignedRequest,
    ledger: CheckpointLedger = Depends(get_ledger),
    verifier: RequestVerifier = Depends(get_verifier)
):
    actor = _authenticate(req, "register_supplier", verifier)
    payload = _parse(RegisterSupplierPayload, req.payload)
    supplier_id = ledger.register_supplier(actor, payload.identity, payload.details)
    return {"supplier_id": supplier_id}


@app.post("/receipts")
def record_receipt(
    req: SignedRequest,
    ledger: CheckpointLedger = Depends(get_ledger),
    verifier: RequestVerifier = Depends(get_verifier)
):
    actor = _authenticate(req, "record_receipt", verifier)
    payload = _parse(RecordReceiptPayload, req.payload)
    digest = ledger.record_receipt(actor, payload.item_id, payload.metadata_bytes())
    return {"item_id": payload.item_id, "content_hash": digest.hex()}


@app.post("/witnesses")
def witness(
    req: SignedRequest,
    ledger: CheckpointLedger = Depends(get_ledger),
    verifier: RequestVerifier = Depends(get_verifier)
):
    actor = _authenticate(req, "witness", verifier)
    payload = _parse(WitnessPayload, req.payload)
    ledger.witness(actor, payload.item_id, payload.supplier_id, payload.name_hash)
    return {"status": "WITNESSED", "item_id": payload.item_id, "supplier_id": payload.supplier_id}


# ============================================================
# Reads
# ============================================================

@app.get("/suppliers/id/{supplier_id}")
def get_supplier(supplier_id: int = Path(ge=0, le=MAX_ID), ledger: CheckpointLedger = Depends(get_ledger)):
    supplier = ledger.get_supplier(supplier_id)
    if supplier is None:
        raise HTTPException(404, "NOT_FOUND")
    return supplier.to_dict()


@app.get("/suppliers/{identity}", response_model=SupplierIdResponse)
def lookup_supplier(identity: str, ledger: CheckpointLedger = Depends(get_ledger)):
    return {"supplier_id": ledger.lookup_supplier(identity.lower())}


@app.get("/receipts/{item_id}/{supplier_id}", response_model=ReceiptResponse)
def get_receipt(
    item_id: int = Path(ge=0, le=MAX_ID),
    supplier_id: int = Path(ge=0, le=MAX_ID),
    ledger: CheckpointLedger = Depends(get_ledger)
):
    record = ledger.get_shipment(item_id, supplier_id)
    return {
        "item_id": item_id,
        "supplier_id": supplier_id,
        "content_hash": ledger.get_receipt_hash(item_id, supplier_id).hex(),
        "recorded": bool(record and record.hash_set),
        "witness_count": ledger.get_witness_count(item_id, supplier_id),
    }


@app.get("/witnesses/{item_id}/{witness}", response_model=WitnessInfoResponse)
def get_witness_info(
    witness: str,
    item_id: int = Path(ge=0, le=MAX_ID),
    ledger: CheckpointLedger = Depends(get_ledger)
):
    witness = witness.lower()
    name_hash, supplier_id = ledger.get_witness_info(item_id, witness)
    return {
        "item_id": item_id,
        "witness": witness,
        "name_hash": name_hash.hex(),
        "supplier_id": supplier_id,
        "witnessed": ledger.get_witness(item_id, witness) is not None,
    }


@app.get("/events")
def export_events(ledger: CheckpointLedger = Depends(get_ledger)):
    return ledger.events.log.export()


@app.get("/events/proof")
def events_proof(ledger: CheckpointLedger = Depends(get_ledger)):
    return ledger.events.log.proof()


@app.get("/health")
def health(ledger: CheckpointLedger = Depends(get_ledger)):
    return {"status": "ok", "env": config.ENV, "owner": ledger.owner, "stats": ledger.store.stats()}
