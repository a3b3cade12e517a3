import logging
import secrets
import time

from hunt.config import REGISTRATION_CURRENCY, REGISTRATION_FEE
from hunt.models import Payment, STATUS_CREATED, STATUS_FAILED, STATUS_PAID, VerifiedUser, utcnow
from hunt.repository import HuntRepository, normalize_registration_id, payment_fields_from_record
from hunt.stripe_service import create_payment, retrieve_payment
from hunt.verification import is_verified, validate_registration_id

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
INTENT_CANCELED = "canceled"


class PaymentError(Exception):
    pass


class InvalidRegistrationId(PaymentError):
    pass


class AlreadyPaid(PaymentError):
    pass


def _order_suffix():
    return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def generate_order_id(registration_id: str) -> str:
    return f"HUNT-{registration_id}-{_order_suffix()}"


def create_payment_order(repo: HuntRepository, registration_id: str):
    """
    Open a registration-fee order with Stripe.

    Returns (payment, intent). An unpaid order that is still open with Stripe
    is handed back with its intent instead of opening a second one.
    """
    code = normalize_registration_id(registration_id)
    if not validate_registration_id(code):
        raise InvalidRegistrationId("Invalid registration ID. The 7th and 8th digits must be 4 and 9.")
    if is_verified(repo, code):
        raise AlreadyPaid("You have already paid for this registration ID.")

    existing = repo.open_payment(code)
    if existing and existing.provider_payment_id:
        intent = retrieve_payment(existing.provider_payment_id)
        if intent.status != INTENT_CANCELED:
            return existing, intent
        repo.set_payment_status(existing, STATUS_FAILED)
        logger.info("Closed canceled payment order %s for %s", existing.order_id, code)

    order_id = generate_order_id(code)
    intent = create_payment(
        REGISTRATION_FEE,
        REGISTRATION_CURRENCY,
        order_id,
        {"order_id": order_id, "registration_id": code},
    )

    payment = Payment(
        order_id=order_id,
        registration_id=code,
        amount=REGISTRATION_FEE,
        currency=REGISTRATION_CURRENCY,
        status=STATUS_CREATED,
        provider_payment_id=intent.id,
        source="stripe",
        created_at=utcnow(),
    )
    repo.add_payment(payment)
    logger.info("Created payment order %s for %s", order_id, code)
    return payment, intent


def handle_payment_event(repo: HuntRepository, event):
    """Apply a Stripe webhook event to the matching payment. Unknown payments are ignored."""
    event_type = event["type"]
    if event_type not in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
        return None

    intent = event["data"]["object"]
    metadata = intent["metadata"] if "metadata" in intent else {}

    payment = None
    if metadata and "order_id" in metadata:
        payment = repo.get_payment(metadata["order_id"])
    if payment is None:
        payment = repo.get_payment_by_provider_id(intent["id"])
    if payment is None:
        logger.warning("Webhook %s for unknown payment %s", event_type, intent["id"])
        return None

    # A paid order is final; late failure events do not downgrade it
    if payment.status == STATUS_PAID:
        return payment

    if event_type == PAYMENT_SUCCEEDED:
        repo.set_payment_status(payment, STATUS_PAID, intent["id"])
        repo.mark_participant_paid(payment.registration_id, intent["id"])
        logger.info("Payment %s paid for %s", payment.order_id, payment.registration_id)
    else:
        repo.set_payment_status(payment, STATUS_FAILED, intent["id"])
        logger.info("Payment %s failed for %s", payment.order_id, payment.registration_id)
    return payment


def upsert_verified_user(repo: HuntRepository, registration_id, name="", email="", phone="", payment_order_id=None):
    user = repo.get_verified_user(registration_id)
    if user is None:
        repo.add_verified_user(VerifiedUser(
            registration_id=registration_id,
            name=name or "",
            email=email or "",
            phone=phone or "",
            verified=True,
            payment_order_id=payment_order_id,
            created_at=utcnow(),
        ))
        return "created"

    if user.verified and (user.payment_order_id or not payment_order_id):
        return "unchanged"

    user.verified = True
    user.name = name or user.name
    user.email = email or user.email
    user.phone = phone or user.phone
    user.payment_order_id = user.payment_order_id or payment_order_id
    user.updated_at = utcnow()
    repo.save()
    return "updated"


def verify_user_manually(repo: HuntRepository, registration_id: str, name="", email="", phone=""):
    code = normalize_registration_id(registration_id)
    logger.info("Admin manually verifying %s", code)

    upsert_verified_user(repo, code, name, email, phone)

    if not repo.has_paid_payment(code):
        now = utcnow()
        repo.add_payment(Payment(
            order_id=f"MANUAL-{_order_suffix()}",
            registration_id=code,
            name=name or "Manual Verification",
            email=email or "",
            phone=phone or "",
            amount=REGISTRATION_FEE,
            currency=REGISTRATION_CURRENCY,
            status=STATUS_PAID,
            source="manual",
            created_at=now,
            processed_at=now,
        ))
        logger.info("Created manual payment record for %s", code)
    return code


def import_payment_records(repo: HuntRepository, records):
    results = {"created": 0, "updated": 0, "skipped": 0}
    for record in records:
        fields = payment_fields_from_record(record)
        if not fields["order_id"] or not fields["registration_id"]:
            results["skipped"] += 1
            continue
        _, created = repo.upsert_payment_record(fields)
        results["created" if created else "updated"] += 1

    logger.info("Imported payment records: %s", results)
    return results


def sync_payments(repo: HuntRepository):
    """Add every not-yet-processed paid payment to the verified roster."""
    results = {"processed": 0, "new_users": 0, "updated_users": 0, "skipped": 0}
    for payment in repo.unprocessed_paid_payments():
        if not payment.registration_id:
            results["skipped"] += 1
            continue

        change = upsert_verified_user(
            repo,
            payment.registration_id,
            payment.name,
            payment.email,
            payment.phone,
            payment_order_id=payment.order_id,
        )
        if change == "created":
            results["new_users"] += 1
        elif change == "updated":
            results["updated_users"] += 1

        repo.mark_payment_processed(payment)
        results["processed"] += 1

    logger.info("Payment sync completed: %s", results)
    return results
