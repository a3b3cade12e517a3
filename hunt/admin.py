from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, StrictBool

from hunt.auth import verify_token
from hunt.models import MILESTONE_FULL_COMPLETION, MILESTONE_THREE_ITEMS
from hunt.payments import import_payment_records, sync_payments, verify_user_manually
from hunt.repository import HuntRepository
from hunt.routes import get_repo
from hunt.verification import is_verification_enabled, set_verification_enabled

router = APIRouter(prefix="/admin", dependencies=[Depends(verify_token)])


class ToggleRequest(BaseModel):
    enabled: StrictBool


class ManualVerifyRequest(BaseModel):
    registration_id: str
    name: Optional[str] = ""
    email: Optional[str] = ""
    phone: Optional[str] = ""


class ImportRequest(BaseModel):
    records: List[dict]


@router.get("/verification")
def get_verification(repo: HuntRepository = Depends(get_repo)):
    return {"verification_enabled": is_verification_enabled(repo)}


@router.post("/verification")
def toggle_verification(request: ToggleRequest, repo: HuntRepository = Depends(get_repo)):
    enabled = set_verification_enabled(repo, request.enabled)
    return {
        "message": f"Verification {'enabled' if enabled else 'disabled'} successfully",
        "verification_enabled": enabled,
    }


@router.post("/verify-user")
def verify_user(request: ManualVerifyRequest, repo: HuntRepository = Depends(get_repo)):
    code = verify_user_manually(repo, request.registration_id, request.name, request.email, request.phone)
    return {"message": f"User {code} has been verified successfully"}


@router.get("/payments")
def list_payments(repo: HuntRepository = Depends(get_repo)):
    return {
        "verified_users": [
            {
                "registration_id": p.registration_id,
                "full_name": p.name,
                "transaction_id": p.order_id,
                "amount": p.amount,
                "source": p.source,
                "timestamp": p.created_at,
            }
            for p in repo.paid_payments()
        ],
        "three_completion_users": [
            {"registration_id": m.registration_id, "completed_at": m.reached_at}
            for m in repo.milestones(MILESTONE_THREE_ITEMS)
        ],
        "completion_users": [
            {"registration_id": m.registration_id, "completed_at": m.reached_at}
            for m in repo.milestones(MILESTONE_FULL_COMPLETION)
        ],
    }


@router.post("/payments/import")
def import_payments(request: ImportRequest, repo: HuntRepository = Depends(get_repo)):
    return {"results": import_payment_records(repo, request.records)}


@router.post("/sync-payments")
def sync(repo: HuntRepository = Depends(get_repo)):
    results = sync_payments(repo)
    return {
        "message": (
            f"Processed {results['processed']} payments, added {results['new_users']} new verified users, "
            f"updated {results['updated_users']} existing users"
        ),
        "results": results,
    }
