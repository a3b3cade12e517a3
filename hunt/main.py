import logging

import stripe
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from hunt.admin import router as admin_router
from hunt.config import LOG_LEVEL
from hunt.database import Base, engine
from hunt.payments import handle_payment_event
from hunt.repository import HuntRepository
from hunt.routes import get_repo, router
from hunt.stripe_service import construct_event
from hunt import models  # noqa: F401  (registers tables on Base.metadata)

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Scavenger Hunt")

app.include_router(router)
app.include_router(admin_router)

Base.metadata.create_all(bind=engine)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Store unavailable"})


@app.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    repo: HuntRepository = Depends(get_repo),
):
    payload = await request.body()

    try:
        event = construct_event(payload, stripe_signature)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature")

    handle_payment_event(repo, event)
    return {"ok": True}
