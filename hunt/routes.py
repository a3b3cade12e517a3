from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hunt.clues import clue_to_dict, first_clue, next_clue
from hunt.config import REGISTRATION_COOKIE_MAX_AGE
from hunt.database import SessionLocal
from hunt.payments import AlreadyPaid, InvalidRegistrationId, create_payment_order, upsert_verified_user
from hunt.progress import has_reached_five, has_reached_three
from hunt.repository import HuntRepository, normalize_registration_id
from hunt.scanner import ScanStatus, handle_scan, progress_check
from hunt.verification import is_verification_enabled, is_verified, verify_registration

router = APIRouter()

REGISTRATION_COOKIE = "registration_id"

STATUS_CODES = {
    ScanStatus.SUCCESS: 200,
    ScanStatus.ALREADY_SCANNED: 200,
    ScanStatus.REGISTRATION_REQUIRED: 200,
    ScanStatus.PAYMENT_REQUIRED: 403,
    ScanStatus.NOT_FOUND: 404,
    ScanStatus.FAILED: 500,
}


def get_repo():
    db = SessionLocal()
    try:
        yield HuntRepository(db)
    finally:
        db.close()


class PaymentRequest(BaseModel):
    registration_id: str


class VerifyRequest(BaseModel):
    registration_id: str


def payment_to_dict(payment):
    return {
        "order_id": payment.order_id,
        "registration_id": payment.registration_id,
        "status": payment.status,
        "amount": payment.amount,
        "currency": payment.currency,
        "payment_id": payment.provider_payment_id,
        "created_at": payment.created_at,
        "updated_at": payment.updated_at,
    }


def require_registration_id(registration_id: Optional[str]) -> str:
    if not registration_id or not registration_id.strip():
        raise HTTPException(status_code=400, detail="Registration ID is required")
    return registration_id


@router.post("/payments")
def create_payment_api(request: PaymentRequest, repo: HuntRepository = Depends(get_repo)):
    try:
        payment, intent = create_payment_order(repo, request.registration_id)
    except InvalidRegistrationId as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AlreadyPaid as e:
        return JSONResponse(status_code=400, content={"detail": str(e), "already_paid": True})

    return {"order_id": payment.order_id, "client_secret": intent.client_secret}


@router.get("/payments/status")
def payment_status(
    order_id: Optional[str] = None,
    registration_id: Optional[str] = None,
    repo: HuntRepository = Depends(get_repo),
):
    if order_id:
        payment = repo.get_payment(order_id)
    elif registration_id:
        payment = repo.latest_payment(normalize_registration_id(registration_id))
    else:
        raise HTTPException(status_code=400, detail="Order ID or Registration ID is required")

    if not payment:
        raise HTTPException(status_code=404, detail="Payment record not found")

    return {"payment": payment_to_dict(payment)}


@router.get("/verify")
def verify_check(registration_id: Optional[str] = None, repo: HuntRepository = Depends(get_repo)):
    result = verify_registration(repo, require_registration_id(registration_id))
    return {
        "verified": result.verified,
        "message": result.message,
        "user_data": result.user_data if result.verified else None,
    }


@router.post("/verify")
def verify(request: VerifyRequest, response: Response, repo: HuntRepository = Depends(get_repo)):
    result = verify_registration(repo, require_registration_id(request.registration_id))
    if not result.verified:
        return {"verified": False, "message": result.message}

    code = result.user_data["registration_id"]
    repo.get_or_create_participant(code)
    if result.user_data.get("order_id"):
        upsert_verified_user(
            repo,
            code,
            result.user_data["name"],
            result.user_data["email"],
            payment_order_id=result.user_data["order_id"],
        )

    response.set_cookie(
        REGISTRATION_COOKIE,
        code,
        max_age=REGISTRATION_COOKIE_MAX_AGE,
        httponly=True,
        samesite="strict",
        path="/",
    )
    return {"verified": True, "message": result.message, "user_data": result.user_data}


@router.get("/verification-status")
def verification_status(repo: HuntRepository = Depends(get_repo)):
    return {"verification_enabled": is_verification_enabled(repo)}


@router.get("/scan/{scan_target_id}")
def scan(
    scan_target_id: str,
    registration_id: Optional[str] = None,
    registration_cookie: Optional[str] = Cookie(None, alias=REGISTRATION_COOKIE),
    repo: HuntRepository = Depends(get_repo),
):
    outcome = handle_scan(repo, registration_id or registration_cookie, scan_target_id)
    return JSONResponse(status_code=STATUS_CODES[outcome.status], content=outcome.to_dict())


@router.get("/progress")
def progress(
    registration_id: Optional[str] = None,
    registration_cookie: Optional[str] = Cookie(None, alias=REGISTRATION_COOKIE),
    repo: HuntRepository = Depends(get_repo),
):
    outcome = progress_check(repo, registration_id or registration_cookie)
    body = {"status": outcome.status.value, "message": outcome.message}
    if outcome.status == ScanStatus.SUCCESS:
        body.update({
            "progress": outcome.count,
            "collected_components": outcome.collected,
            "complete": outcome.complete,
        })
    return JSONResponse(status_code=STATUS_CODES[outcome.status], content=body)


@router.get("/clues/first")
def get_first_clue(registration_id: Optional[str] = None, repo: HuntRepository = Depends(get_repo)):
    if not is_verified(repo, require_registration_id(registration_id)):
        raise HTTPException(status_code=403, detail="Payment verification required to access clues")

    target = first_clue(repo)
    if not target:
        raise HTTPException(status_code=404, detail="Clue not found")

    return {"clue": clue_to_dict(target)}


@router.get("/clues/next")
def get_next_clue(registration_id: Optional[str] = None, repo: HuntRepository = Depends(get_repo)):
    registration_id = require_registration_id(registration_id)
    if not is_verified(repo, registration_id):
        raise HTTPException(status_code=403, detail="Payment verification required to access clues")

    if not repo.get_participant(normalize_registration_id(registration_id)):
        raise HTTPException(status_code=404, detail="User not found")

    target = next_clue(repo, registration_id)
    if not target:
        return {"message": "All components collected"}

    return {"clue": clue_to_dict(target)}


@router.get("/completion/check")
def completion_check(registration_id: Optional[str] = None, repo: HuntRepository = Depends(get_repo)):
    return {"has_completed": has_reached_five(repo, require_registration_id(registration_id))}


@router.get("/refreshment/check")
def refreshment_check(registration_id: Optional[str] = None, repo: HuntRepository = Depends(get_repo)):
    return {"has_three_components": has_reached_three(repo, require_registration_id(registration_id))}
