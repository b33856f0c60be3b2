import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

SRC_DIR = Path(__file__).resolve().parent
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

SERVICES_ROOT = SRC_DIR.parents[1]
if str(SERVICES_ROOT) not in sys.path:
    sys.path.insert(0, str(SERVICES_ROOT))

from shared.observability.privacy import hash_payload, mask_email
from shared.observability.telemetry import bind_request_context, ensure_request_id, reset_request_context, setup_telemetry

from chat_service import answer_chat_query
from insight_engine import compute_budget_status
from middleware.rate_limit import SimpleRateLimiter, build_ai_rate_limiter, build_default_rate_limiter, is_ai_route
from models.transaction_candidate import ExtractedCandidate
from parsers.ai_receipt_parser import analyze_receipt_text
from parsers.receipt_parser import extract_receipt_candidates
from parsers.statement_parser import (
    EXPECTED_FORMAT,
    FORMAT_EXAMPLE,
    MAX_REPORTED_ERRORS,
    PREVIEW_LINE_COUNT,
    parse_statement_text,
)
from parsers.text_extraction import PDF_CONTENT_TYPE, TextExtractionError, extract_document_text, extract_pdf_text
from persistence.database import get_session, init_db
from persistence.models import Transaction, TransactionType, User
from persistence.repository import (
    InvalidTransactionError,
    NewTransaction,
    TransactionFilter,
    TransactionRepository,
    UserRepository,
)
from security import (
    AuthenticationError,
    create_access_token,
    get_current_user_id,
    get_service_settings,
    hash_password,
    verify_password,
)
from settings import ServiceSettings, resolve_cors_origins
from text_provider import (
    AIConfigurationError,
    AIResponseFormatError,
    AIServiceError,
    TextGenerator,
    load_text_generator,
)
from transaction_reports import compute_monthly_trends, compute_stats, compute_summary

logger = logging.getLogger(__name__)

app = FastAPI(title="Finance API")
setup_telemetry(app, service_name="finance-api")
app.state.rate_limiter = build_default_rate_limiter()
app.state.ai_rate_limiter = build_ai_rate_limiter()


def error_response(status_code: int, error_code: str, details: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error_code, "details": details},
    )


def _client_ip(request: Request) -> str | None:
    client = request.client
    if client:
        return client.host
    return None


def coerce_client_datetime(value: Any) -> datetime:
    """
    Accept ISO date or datetime input from clients and return naive local time.

    Transactions are stored as naive wall-clock timestamps, so offset-aware
    input is converted to the server's local zone before the offset is dropped.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
    else:
        raise ValueError("Expected an ISO 8601 date or datetime")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = ensure_request_id(request)
    token = bind_request_context(request_id)
    try:
        response = await call_next(request)
        response.headers.setdefault("x-request-id", request_id)
        return response
    finally:
        reset_request_context(token)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    client_id = _client_ip(request) or "unknown"
    limiters: List[SimpleRateLimiter] = [app.state.rate_limiter]
    if is_ai_route(request.url.path):
        limiters.append(app.state.ai_rate_limiter)

    for limiter in limiters:
        allowed, retry_after = await limiter.allow(client_id)
        if allowed:
            continue

        retry_after_header = str(max(1, int(retry_after or 1)))
        logger.warning(
            {
                "event": "rate_limited",
                "request_id": getattr(request.state, "request_id", None),
                "client_ip": client_id,
                "path": request.url.path,
                "retry_after_seconds": retry_after,
            }
        )
        response = error_response(
            429,
            "rate_limit_exceeded",
            "Too many requests. Please retry shortly.",
        )
        response.headers["Retry-After"] = retry_after_header
        return response

    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=resolve_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Raw inputs are omitted; request bodies may carry passwords.
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.info({"event": "request_validation_failed", "path": request.url.path, "error_count": len(details)})
    return error_response(400, "invalid_request", details)


@app.exception_handler(AuthenticationError)
async def authentication_exception_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    logger.info({"event": "request_unauthorized", "path": request.url.path})
    return error_response(401, "unauthorized", "Unauthorized")


def get_now() -> datetime:
    """Current local wall-clock time; overridden in tests to pin the calendar."""
    return datetime.now()


def get_text_generator_factory() -> Callable[[], TextGenerator]:
    """Return a factory so the provider is only built when a request actually needs the AI."""
    return load_text_generator


@app.on_event("startup")
def on_startup() -> None:
    """Initialize persistence before serving requests."""
    init_db()


@app.get("/health")
def health_check() -> dict:
    """Reports service liveness for orchestrators and the dashboard."""
    return {"status": "ok", "service": "finance-api"}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


def _auth_payload(user: User, settings: ServiceSettings) -> Dict[str, Any]:
    return {
        "token": create_access_token(user.id, settings),
        "user": {"id": user.id, "email": user.email, "name": user.name},
    }


@app.post("/api/auth/register", response_model=None)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_session),
    settings: ServiceSettings = Depends(get_service_settings),
) -> Dict[str, Any] | JSONResponse:
    """Creates an account and returns a session token for it."""
    users = UserRepository(db)
    if users.get_by_email(payload.email) is not None:
        logger.info({"event": "register_duplicate_email", "email": mask_email(payload.email)})
        return error_response(409, "email_already_registered", "Email already registered")

    try:
        user = users.create_user(payload.email, hash_password(payload.password), payload.name)
    except IntegrityError:
        db.rollback()
        logger.info({"event": "register_duplicate_email", "email": mask_email(payload.email)})
        return error_response(409, "email_already_registered", "Email already registered")

    logger.info({"event": "user_registered", "user_id": user.id, "email": mask_email(user.email)})
    return _auth_payload(user, settings)


@app.post("/api/auth/login", response_model=None)
def login(
    payload: LoginRequest,
    db: Session = Depends(get_session),
    settings: ServiceSettings = Depends(get_service_settings),
) -> Dict[str, Any] | JSONResponse:
    """Exchanges email and password for a session token."""
    user = UserRepository(db).get_by_email(payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.info({"event": "login_failed", "email": mask_email(payload.email)})
        return error_response(401, "invalid_credentials", "Invalid credentials")

    logger.info({"event": "login_succeeded", "user_id": user.id})
    return _auth_payload(user, settings)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TransactionCreateRequest(BaseModel):
    type: TransactionType
    amount: float = Field(gt=0, allow_inf_nan=False)
    category: str = Field(min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=500)
    date: datetime

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime:
        return coerce_client_datetime(value)

    @field_validator("category")
    @classmethod
    def _category_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("category must not be blank")
        return value.strip()


def _parse_window(from_: Optional[str], to: Optional[str]) -> tuple[Optional[datetime], Optional[datetime]]:
    start = coerce_client_datetime(from_) if from_ else None
    end = coerce_client_datetime(to) if to else None
    return start, end


def _invalid_window_response(exc: ValueError) -> JSONResponse:
    return error_response(400, "invalid_request", f"Invalid date range: {exc}")


@app.post("/api/transactions", response_model=None)
def create_transaction(
    payload: TransactionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any] | JSONResponse:
    """Records a single manually entered transaction."""
    repo = TransactionRepository(db)
    try:
        record = repo.create_transaction(
            user_id,
            NewTransaction(
                type=payload.type,
                amount=payload.amount,
                category=payload.category,
                description=payload.description or None,
                date=payload.date,
            ),
        )
    except InvalidTransactionError as exc:
        return error_response(400, "invalid_request", str(exc))
    except SQLAlchemyError:
        logger.exception({"event": "transaction_create_failed", "user_id": user_id})
        return error_response(500, "internal_error", "Failed to save transaction.")

    logger.info({"event": "transaction_created", "transaction_id": record.id, "type": record.type.value})
    return record.to_dict()


@app.get("/api/transactions", response_model=None)
def list_transactions(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    type: Optional[TransactionType] = Query(None),
    category: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any] | JSONResponse:
    """Pages through the caller's transactions, newest first."""
    try:
        start, end = _parse_window(from_, to)
    except ValueError as exc:
        return _invalid_window_response(exc)

    filters = TransactionFilter(start=start, end=end, type=type, category=category or None)
    items, total = TransactionRepository(db).list_transactions(user_id, filters, page=page, page_size=page_size)
    return {
        "items": [item.to_dict() for item in items],
        "page": page,
        "pageSize": page_size,
        "total": total,
    }


@app.get("/api/transactions/summary", response_model=None)
def transactions_summary(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any] | JSONResponse:
    try:
        start, end = _parse_window(from_, to)
    except ValueError as exc:
        return _invalid_window_response(exc)
    return compute_summary(TransactionRepository(db), user_id, start, end)


@app.get("/api/transactions/trends", response_model=None)
def transactions_trends(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any] | JSONResponse:
    try:
        start, end = _parse_window(from_, to)
    except ValueError as exc:
        return _invalid_window_response(exc)
    return {"monthlyTrends": compute_monthly_trends(TransactionRepository(db), user_id, start, end)}


@app.get("/api/transactions/stats", response_model=None)
def transactions_stats(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any] | JSONResponse:
    try:
        start, end = _parse_window(from_, to)
    except ValueError as exc:
        return _invalid_window_response(exc)
    return compute_stats(TransactionRepository(db), user_id, start, end)


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------


class BudgetSetRequest(BaseModel):
    monthlyBudget: float = Field(ge=0, allow_inf_nan=False)


@app.post("/api/budget/set", response_model=None)
def set_budget(
    payload: BudgetSetRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any] | JSONResponse:
    users = UserRepository(db)
    user = users.get_user(user_id)
    if user is None:
        return error_response(401, "unauthorized", "Unauthorized")

    user = users.set_monthly_budget(user, payload.monthlyBudget)
    logger.info({"event": "monthly_budget_set", "monthly_budget": user.monthly_budget})
    return {"monthlyBudget": float(user.monthly_budget)}


@app.get("/api/budget/status", response_model=None)
def budget_status(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    return compute_budget_status(TransactionRepository(db), user_id, now)


# ---------------------------------------------------------------------------
# Chatbot
# ---------------------------------------------------------------------------


class ChatQueryRequest(BaseModel):
    message: str = Field(min_length=1)

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value


@app.post("/api/chatbot/query", response_model=None)
def chatbot_query(
    payload: ChatQueryRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
    now: datetime = Depends(get_now),
    generator_factory: Callable[[], TextGenerator] = Depends(get_text_generator_factory),
    settings: ServiceSettings = Depends(get_service_settings),
) -> Dict[str, Any] | JSONResponse:
    """Answers a natural-language question about the caller's own finances."""
    try:
        reply = answer_chat_query(
            payload.message,
            user_id,
            TransactionRepository(db),
            generator_factory,
            now,
            currency_symbol=settings.currency_symbol,
        )
    except AIConfigurationError as exc:
        logger.error({"event": "chat_ai_not_configured", "error": str(exc)})
        return error_response(503, "ai_not_configured", "AI service is not configured.")
    except AIServiceError as exc:
        logger.error(
            {
                "event": "chat_ai_failed",
                "message_hash": hash_payload(payload.message),
                "error_type": type(exc).__name__,
                "error": str(exc),
            }
        )
        return error_response(502, "ai_request_failed", "AI request failed.")

    return reply.to_dict()


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


class ConfirmTransactionItem(BaseModel):
    date: datetime
    description: str
    category: str = Field(min_length=1, max_length=64)
    amount: float = Field(gt=0, allow_inf_nan=False)
    type: TransactionType

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime:
        return coerce_client_datetime(value)


class ConfirmTransactionsRequest(BaseModel):
    transactions: List[ConfirmTransactionItem]


async def _read_upload(file: Optional[UploadFile], settings: ServiceSettings) -> bytes | JSONResponse:
    if file is None:
        return error_response(400, "file_required", "File upload is required.")

    file_bytes = await file.read()
    if not file_bytes:
        return error_response(400, "file_empty", "Uploaded file is empty.")
    if len(file_bytes) > settings.max_upload_bytes:
        return error_response(
            413,
            "file_too_large",
            f"Uploaded file exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB limit.",
        )
    return file_bytes


def _persist_candidates(
    db: Session,
    user_id: str,
    candidates: List[ExtractedCandidate],
) -> List[Transaction] | JSONResponse:
    repo = TransactionRepository(db)
    try:
        return repo.create_many(user_id, [candidate.to_new_transaction() for candidate in candidates])
    except InvalidTransactionError as exc:
        return error_response(400, "invalid_request", str(exc))
    except SQLAlchemyError:
        logger.exception({"event": "transaction_batch_failed", "candidate_count": len(candidates)})
        return error_response(500, "internal_error", "Failed to save transactions.")


@app.post("/api/uploads/receipt", response_model=None)
async def upload_receipt(
    file: Optional[UploadFile] = File(None),
    preview: bool = Query(False),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
    now: datetime = Depends(get_now),
    settings: ServiceSettings = Depends(get_service_settings),
) -> Dict[str, Any] | JSONResponse:
    """OCRs a receipt (image or PDF) and imports every priced line as an expense."""
    file_bytes = await _read_upload(file, settings)
    if isinstance(file_bytes, JSONResponse):
        return file_bytes

    try:
        text = await run_in_threadpool(extract_document_text, file_bytes, file.content_type)
    except TextExtractionError as exc:
        return error_response(500, "text_extraction_failed", str(exc))

    if not text.strip():
        return error_response(400, "no_text_extracted", "No text could be extracted from the file.")

    candidates = extract_receipt_candidates(text, now)
    logger.info(
        {
            "event": "receipt_candidates_extracted",
            "candidate_count": len(candidates),
            "text_hash": hash_payload(text),
            "preview": preview,
        }
    )
    if not candidates:
        return {"imported": 0, "items": [], "extractedText": text}
    if preview:
        return {"imported": 0, "preview": True, "items": [candidate.to_dict() for candidate in candidates]}

    created = _persist_candidates(db, user_id, candidates)
    if isinstance(created, JSONResponse):
        return created
    return {"imported": len(created), "items": [record.to_dict() for record in created]}


@app.post("/api/uploads/statement", response_model=None)
async def upload_statement(
    file: Optional[UploadFile] = File(None),
    preview: bool = Query(False),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
    settings: ServiceSettings = Depends(get_service_settings),
) -> Dict[str, Any] | JSONResponse:
    """Imports a PDF bank statement laid out as `date description category amount type` rows."""
    if file is not None and (file.content_type or "").lower() != PDF_CONTENT_TYPE:
        return error_response(400, "unsupported_file_type", "Only PDF files are supported for statement import.")

    file_bytes = await _read_upload(file, settings)
    if isinstance(file_bytes, JSONResponse):
        return file_bytes

    try:
        text = await run_in_threadpool(extract_pdf_text, file_bytes)
    except TextExtractionError as exc:
        return error_response(500, "text_extraction_failed", str(exc))

    if not text.strip():
        return error_response(400, "no_text_extracted", "No text could be extracted from PDF.")

    result = parse_statement_text(text)
    logger.info(
        {
            "event": "statement_parsed",
            "total_lines": result.total_lines,
            "parsed": len(result.candidates),
            "error_count": len(result.errors),
        }
    )

    if not result.candidates:
        return JSONResponse(
            status_code=400,
            content={
                "error": "no_valid_transactions",
                "details": EXPECTED_FORMAT,
                "example": FORMAT_EXAMPLE,
                "extractedLines": result.lines[:PREVIEW_LINE_COUNT],
                "totalLines": result.total_lines,
            },
        )

    body: Dict[str, Any] = {"skipped": result.skipped}
    if result.errors:
        body["errors"] = result.errors[:MAX_REPORTED_ERRORS]

    if preview:
        return {
            "imported": 0,
            "preview": True,
            "items": [candidate.to_dict() for candidate in result.candidates],
            **body,
        }

    created = _persist_candidates(db, user_id, result.candidates)
    if isinstance(created, JSONResponse):
        return created
    return {"imported": len(created), **body}


@app.post("/api/uploads/ai-receipt", response_model=None)
async def upload_ai_receipt(
    file: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    generator_factory: Callable[[], TextGenerator] = Depends(get_text_generator_factory),
    settings: ServiceSettings = Depends(get_service_settings),
) -> Dict[str, Any] | JSONResponse:
    """Lets the AI structure a receipt; the result is returned for review, not saved."""
    file_bytes = await _read_upload(file, settings)
    if isinstance(file_bytes, JSONResponse):
        return file_bytes

    try:
        text = await run_in_threadpool(extract_document_text, file_bytes, file.content_type)
    except TextExtractionError as exc:
        return error_response(500, "text_extraction_failed", str(exc))

    if not text.strip():
        return error_response(400, "no_text_extracted", "No text could be extracted from the file.")

    try:
        generator = generator_factory()
        candidates = await run_in_threadpool(analyze_receipt_text, text, generator, now.date())
    except AIConfigurationError as exc:
        logger.error({"event": "ai_receipt_not_configured", "error": str(exc)})
        return error_response(503, "ai_not_configured", "AI service is not configured.")
    except AIResponseFormatError as exc:
        logger.error({"event": "ai_receipt_invalid_response", "error": str(exc)})
        return error_response(502, "ai_invalid_response", str(exc))
    except AIServiceError as exc:
        logger.error({"event": "ai_receipt_failed", "error_type": type(exc).__name__, "error": str(exc)})
        return error_response(502, "ai_request_failed", "Failed to analyze receipt with AI.")

    return {"extractedText": text, "transactions": candidates}


@app.post("/api/uploads/ai-receipt/confirm", response_model=None)
def confirm_ai_receipt(
    payload: ConfirmTransactionsRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any] | JSONResponse:
    """Persists the reviewed AI candidates as one atomic batch."""
    candidates = [
        ExtractedCandidate(
            amount=item.amount,
            category=item.category,
            description=item.description,
            date=item.date,
            type=item.type,
        )
        for item in payload.transactions
    ]
    created = _persist_candidates(db, user_id, candidates)
    if isinstance(created, JSONResponse):
        return created

    logger.info({"event": "ai_receipt_confirmed", "imported": len(created)})
    return {"imported": len(created), "items": [record.to_dict() for record in created]}
