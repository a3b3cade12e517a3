import logging
from dataclasses import dataclass, field
from typing import Optional

from hunt.repository import HuntRepository, normalize_registration_id

logger = logging.getLogger(__name__)

VERIFICATION_SETTING = "verification_enabled"


@dataclass
class VerificationResult:
    verified: bool
    message: str
    user_data: Optional[dict] = field(default=None)


def validate_registration_id(registration_id: str) -> bool:
    # College registration numbers carry "49" in the 7th and 8th positions
    trimmed = registration_id.strip()
    if len(trimmed) < 8:
        return False
    return trimmed[6] == "4" and trimmed[7] == "9"


def is_verification_enabled(repo: HuntRepository) -> bool:
    return repo.get_flag(VERIFICATION_SETTING, default=True)


def set_verification_enabled(repo: HuntRepository, enabled: bool) -> bool:
    repo.set_flag(VERIFICATION_SETTING, enabled)
    logger.info("Payment verification %s", "enabled" if enabled else "disabled")
    return enabled


def check_verified(repo: HuntRepository, registration_id: str, verification_enabled: bool) -> bool:
    if not verification_enabled:
        return True
    return repo.has_paid_payment(normalize_registration_id(registration_id))


def is_verified(repo: HuntRepository, registration_id: str) -> bool:
    """Paid participants are verified; everyone is while verification is off."""
    return check_verified(repo, registration_id, is_verification_enabled(repo))


def verify_registration(repo: HuntRepository, registration_id: str) -> VerificationResult:
    normalized_id = normalize_registration_id(registration_id)

    if not is_verification_enabled(repo):
        return VerificationResult(
            verified=True,
            message="Verification bypassed - system in open access mode",
            user_data={"registration_id": normalized_id, "name": "Auto-approved User", "email": ""},
        )

    payment = repo.find_paid_payment(normalized_id)
    if payment is None:
        logger.info("No paid payment for %s", normalized_id)
        return VerificationResult(
            verified=False,
            message="No payment record found for this registration ID. Please complete payment to continue.",
        )

    return VerificationResult(
        verified=True,
        message="Registration verified successfully",
        user_data={
            "registration_id": normalized_id,
            "name": payment.name or "",
            "email": payment.email or "",
            "order_id": payment.order_id,
            "transaction_id": payment.provider_payment_id or payment.order_id,
        },
    )
