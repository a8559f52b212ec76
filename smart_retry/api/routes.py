"""API route handlers for the Smart Retry decision service."""
import json
import secrets
import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from smart_retry.config import settings
from smart_retry.database import get_db
from smart_retry.engine import InvalidConfigError
from smart_retry.logging import get_logger
from smart_retry.schemas import DecideRequest, DecideResponse, ErrorResponse
from smart_retry.services.decision import DecisionService
from smart_retry.services.history_store import TransactionHistoryStore
from smart_retry import metrics

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["decisions"])

API_KEY_HEADER = "x-api-key"


def get_history_store(db: Session = Depends(get_db)) -> TransactionHistoryStore:
    """Dependency that provides the transaction history store."""
    return TransactionHistoryStore(db)


def _error(status_code: int, error: str, message: str = None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def _is_authorized(request: Request) -> bool:
    expected = settings.decision_api_key
    provided = request.headers.get(API_KEY_HEADER, "")
    if not expected:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length", "0"))
    except ValueError:
        return 0


@router.post(
    "/decide",
    response_model=DecideResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse},
               413: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def decide_portfolio(
    request: Request,
    history_store: TransactionHistoryStore = Depends(get_history_store),
):
    """
    Decide STOP / RETRY / SCHEDULE for a portfolio of delinquent loans.

    This endpoint:
    1. Authenticates the caller with the shared-secret x-api-key header
    2. Validates the payload size and shape
    3. Loads each loan's transaction history from the store
    4. Runs the decision engine and returns one decision per loan
    """
    start_time = time.perf_counter()

    if not _is_authorized(request):
        logger.warning("decide_unauthorized", outcome="unauthorized")
        metrics.record_rejection("unauthorized")
        return _error(401, "Unauthorized")

    if _declared_length(request) > settings.max_body_bytes:
        metrics.record_rejection("payload_too_large")
        return _error(413, "payload_too_large", "Body too large")

    raw_body = await request.body()
    if len(raw_body) > settings.max_body_bytes:
        metrics.record_rejection("payload_too_large")
        return _error(413, "payload_too_large", "Body too large")

    try:
        payload = json.loads(raw_body) if raw_body else {}
    except ValueError:
        metrics.record_rejection("bad_request")
        return _error(400, "bad_request", "Invalid JSON body")

    if not isinstance(payload, dict):
        metrics.record_rejection("bad_request")
        return _error(400, "bad_request", "Body must be a JSON object")

    try:
        body = DecideRequest.model_validate(payload)
    except ValidationError as e:
        metrics.record_rejection("bad_request")
        logger.warning("decide_bad_request", error=str(e), outcome="bad_request")
        return _error(400, "bad_request", "loans must be a list and config an object")

    logger.info("decide_requested", loan_count=len(body.loans))

    decision_service = DecisionService(history_store)

    try:
        response = decision_service.decide_portfolio(body.loans, body.config)
    except InvalidConfigError as e:
        metrics.record_rejection("bad_request")
        logger.warning("decide_invalid_config", error=str(e), outcome="bad_request")
        return _error(400, "invalid_config", str(e))

    logger.info(
        "decide_completed",
        decision_count=len(response.decisions),
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        outcome="success",
    )

    return response
