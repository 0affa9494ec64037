"""FastAPI main application."""
import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from finguard.config import settings
from finguard.errors import (
    InvalidDataType,
    ItemNotFound,
    ProviderError,
    RateLimitTimeout,
    UnauthorizedError,
    ValidationError,
)
from finguard.gateway import Gateway
from finguard.models.provider import ExchangeTokenResponse, LinkTokenResponse
from finguard.models.records import FreeTierStatus, SyncResult

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    """Install the root handler once; later calls leave existing handlers alone."""
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)


@lru_cache(maxsize=1)
def get_gateway() -> Gateway:
    return Gateway.from_settings(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting %s", settings.app_name)
    yield
    if get_gateway.cache_info().currsize:
        await get_gateway().close()
        get_gateway.cache_clear()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


class LinkTokenRequest(BaseModel):
    user_id: str
    client_name: str = "Finguard"


class ExchangeRequest(BaseModel):
    user_id: str
    public_token: str
    institution_id: Optional[str] = None


class SyncRequest(BaseModel):
    user_id: str
    access_token: str
    start_date: str = Field(..., description="YYYY-MM-DD")
    end_date: str = Field(..., description="YYYY-MM-DD")
    item_id: Optional[str] = None
    page_size: int = Field(default=500, ge=1, le=500)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.violations})


@app.exception_handler(UnauthorizedError)
async def unauthorized_handler(request: Request, exc: UnauthorizedError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(InvalidDataType)
async def invalid_type_handler(request: Request, exc: InvalidDataType):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ItemNotFound)
async def item_not_found_handler(request: Request, exc: ItemNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RateLimitTimeout)
async def rate_limit_handler(request: Request, exc: RateLimitTimeout):
    return JSONResponse(status_code=429, content={"detail": str(exc), "endpoint": exc.endpoint})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.error("Provider error %s/%s: %s", exc.error_type, exc.error_code, exc.error_message)
    return JSONResponse(status_code=502, content=exc.to_dict())


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": settings.app_name, "version": "1.0.0"}


@app.post("/records/{entity_type}")
async def validate_record(
    entity_type: str,
    record: Dict[str, Any],
    actor_id: str = Query(..., description="Identity performing the write"),
    gateway: Gateway = Depends(get_gateway),
):
    """
    Validate and sanitize a transaction, account or user record.

    Returns the canonical record that may be persisted.
    """
    clean = await gateway.validate_and_sanitize(record, entity_type, actor_id)
    return {"entity_type": entity_type, "record": clean}


@app.post("/provider/link-token", response_model=LinkTokenResponse)
async def create_link_token(request: LinkTokenRequest, gateway: Gateway = Depends(get_gateway)):
    return await gateway.create_link_token(request.user_id, request.client_name)


@app.post("/provider/exchange", response_model=ExchangeTokenResponse)
async def exchange_public_token(request: ExchangeRequest, gateway: Gateway = Depends(get_gateway)):
    return await gateway.exchange_public_token(request.user_id, request.public_token, request.institution_id)


@app.post("/provider/sync", response_model=SyncResult)
async def sync_transactions(request: SyncRequest, gateway: Gateway = Depends(get_gateway)):
    """Import one item's transactions through validation and sanitization."""
    return await gateway.sync_transactions(
        request.user_id,
        request.access_token,
        request.start_date,
        request.end_date,
        item_id=request.item_id,
        page_size=request.page_size,
    )


@app.get("/provider/items")
async def list_items(
    user_id: str,
    status: Optional[str] = Query("good", description="Item status filter; empty for every item"),
    gateway: Gateway = Depends(get_gateway),
):
    """Linked items for a user. Access tokens never leave the server."""
    items = gateway.linked_items(user_id, status or None)
    return {"user_id": user_id, "items": [item.model_dump(exclude={"access_token"}) for item in items]}


@app.get("/provider/items/{item_id}/accounts")
async def item_accounts(item_id: str, user_id: str, gateway: Gateway = Depends(get_gateway)):
    return {"item_id": item_id, "accounts": gateway.item_accounts(user_id, item_id)}


@app.delete("/provider/items/{item_id}")
async def remove_item(item_id: str, user_id: str, gateway: Gateway = Depends(get_gateway)):
    """Revoke an item and delete its stored accounts and transactions."""
    return await gateway.remove_item(user_id, item_id)


@app.get("/usage/{user_id}")
async def monthly_usage(
    user_id: str,
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to the current month"),
    gateway: Gateway = Depends(get_gateway),
):
    try:
        usage = await gateway.monthly_usage(user_id, month)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"detail": str(e)})
    return {"user_id": user_id, "month": month, "usage": usage}


@app.get("/usage/{user_id}/free-tier", response_model=FreeTierStatus)
async def free_tier(user_id: str, gateway: Gateway = Depends(get_gateway)):
    return await gateway.free_tier_status(user_id)


if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)
