from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError

from hunt.catalog import seed_catalog
from hunt.models import (
    CollectedItem,
    Item,
    Milestone,
    Participant,
    Payment,
    Scan,
    ScanTarget,
    Setting,
    STATUS_CREATED,
    STATUS_PAID,
    VerifiedUser,
    utcnow,
)

# Older payment records were written with either spelling
REGISTRATION_ID_FIELDS = ("registration_id", "registrationId", "registrationid")


def normalize_registration_id(registration_id: str) -> str:
    return registration_id.strip().upper()


def payment_fields_from_record(record: dict) -> dict:
    """Map a raw payment record onto Payment columns."""
    registration_id = None
    for field in REGISTRATION_ID_FIELDS:
        if record.get(field):
            registration_id = normalize_registration_id(str(record[field]))
            break

    return {
        "order_id": record.get("order_id") or record.get("orderId"),
        "registration_id": registration_id,
        "amount": record.get("amount"),
        "currency": record.get("currency"),
        "status": record.get("status"),
        "provider_payment_id": record.get("paymentId") or record.get("payment_id"),
        "name": record.get("name"),
        "email": record.get("email"),
        "phone": record.get("phone"),
    }


class HuntRepository:
    """Store access for the hunt, one instance per request session."""

    def __init__(self, db):
        self.db = db
        self._catalog_ready = False

    def rollback(self):
        self.db.rollback()

    # Catalog

    def _ensure_catalog(self):
        if not self._catalog_ready:
            seed_catalog(self.db)
            self._catalog_ready = True

    def items(self):
        self._ensure_catalog()
        return self.db.query(Item).order_by(Item.position).all()

    def get_item(self, item_id):
        self._ensure_catalog()
        return self.db.get(Item, item_id)

    def get_scan_target(self, scan_target_id):
        self._ensure_catalog()
        return self.db.get(ScanTarget, scan_target_id)

    def scan_target_for_item(self, item_id):
        self._ensure_catalog()
        return self.db.query(ScanTarget).filter_by(component_id=item_id).first()

    # Participants

    def get_participant(self, registration_id):
        return self.db.get(Participant, registration_id)

    def get_or_create_participant(self, registration_id):
        participant = self.db.get(Participant, registration_id)
        if participant:
            return participant

        participant = Participant(registration_id=registration_id, progress=0, created_at=utcnow())
        self.db.add(participant)
        try:
            self.db.commit()
        except IntegrityError:
            # Created concurrently by another request
            self.db.rollback()
            participant = self.db.get(Participant, registration_id)
        return participant

    def collected_items(self, registration_id):
        return (
            self.db.query(Item)
            .join(CollectedItem, CollectedItem.item_id == Item.id)
            .filter(CollectedItem.registration_id == registration_id)
            .order_by(CollectedItem.id)
            .all()
        )

    def collected_item_ids(self, registration_id):
        rows = (
            self.db.query(CollectedItem.item_id)
            .filter_by(registration_id=registration_id)
            .order_by(CollectedItem.id)
            .all()
        )
        return [row.item_id for row in rows]

    def collect_item(self, registration_id, item_id, scan_target_id):
        """
        Add an item to a participant's collection.

        The (participant, item) unique constraint makes the append itself
        idempotent. Returns the participant's new item count, read inside the
        same transaction as the increment, or None when the item was already
        collected.
        """
        now = utcnow()
        self.db.add(CollectedItem(registration_id=registration_id, item_id=item_id, collected_at=now))
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            return None

        self.db.execute(
            update(Participant)
            .where(Participant.registration_id == registration_id)
            .values(progress=Participant.progress + 1, last_scan_at=now)
            .execution_options(synchronize_session=False)
        )
        new_count = (
            self.db.query(Participant.progress)
            .filter(Participant.registration_id == registration_id)
            .scalar()
        )
        self.db.add(Scan(
            registration_id=registration_id,
            scan_target_id=scan_target_id,
            item_id=item_id,
            scanned_at=now,
        ))
        self.db.commit()
        return new_count

    def scan_count(self, scan_target_id):
        return self.db.query(Scan).filter_by(scan_target_id=scan_target_id).count()

    def count_participants_ahead(self, participant):
        ahead = [Participant.progress > participant.progress]
        if participant.last_scan_at is not None:
            ahead.append(and_(
                Participant.progress == participant.progress,
                Participant.last_scan_at < participant.last_scan_at,
            ))
        return (
            self.db.query(Participant)
            .filter(Participant.registration_id != participant.registration_id, or_(*ahead))
            .count()
        )

    def mark_participant_paid(self, registration_id, payment_id):
        participant = self.get_or_create_participant(registration_id)
        participant.has_paid = True
        participant.payment_id = payment_id
        participant.paid_at = utcnow()
        self.db.commit()
        return participant

    # Payments

    def find_paid_payment(self, registration_id):
        return (
            self.db.query(Payment)
            .filter_by(registration_id=registration_id, status=STATUS_PAID)
            .first()
        )

    def has_paid_payment(self, registration_id):
        return self.find_paid_payment(registration_id) is not None

    def get_payment(self, order_id):
        return self.db.get(Payment, order_id)

    def get_payment_by_provider_id(self, provider_payment_id):
        return self.db.query(Payment).filter_by(provider_payment_id=provider_payment_id).first()

    def latest_payment(self, registration_id):
        return (
            self.db.query(Payment)
            .filter_by(registration_id=registration_id)
            .order_by(Payment.created_at.desc())
            .first()
        )

    def open_payment(self, registration_id):
        return (
            self.db.query(Payment)
            .filter_by(registration_id=registration_id, status=STATUS_CREATED)
            .order_by(Payment.created_at.desc())
            .first()
        )

    def any_payment(self, registration_id):
        return self.db.query(Payment).filter_by(registration_id=registration_id).first()

    def add_payment(self, payment):
        self.db.add(payment)
        self.db.commit()
        return payment

    def set_payment_status(self, payment, status, provider_payment_id=None):
        payment.status = status
        if provider_payment_id:
            payment.provider_payment_id = provider_payment_id
        payment.updated_at = utcnow()
        self.db.commit()
        return payment

    def paid_payments(self):
        return (
            self.db.query(Payment)
            .filter_by(status=STATUS_PAID)
            .order_by(Payment.created_at)
            .all()
        )

    def unprocessed_paid_payments(self):
        return (
            self.db.query(Payment)
            .filter(Payment.status == STATUS_PAID, Payment.processed_at.is_(None))
            .order_by(Payment.created_at)
            .all()
        )

    def upsert_payment_record(self, fields):
        payment = self.db.get(Payment, fields["order_id"])
        created = payment is None
        if created:
            payment = Payment(order_id=fields["order_id"], source="import", created_at=utcnow())
            self.db.add(payment)
        # A paid order is final; imports do not change its status
        locked = {"order_id", "status"} if payment.status == STATUS_PAID else {"order_id"}
        for key, value in fields.items():
            if key not in locked and value is not None:
                setattr(payment, key, value)
        payment.updated_at = utcnow()
        self.db.commit()
        return payment, created

    def mark_payment_processed(self, payment):
        payment.processed_at = utcnow()
        self.db.commit()

    # Milestones

    def has_milestone(self, registration_id, kind):
        return (
            self.db.query(Milestone)
            .filter_by(registration_id=registration_id, kind=kind)
            .first()
        ) is not None

    def record_milestone(self, registration_id, kind):
        """Insert-if-absent. Returns True only for the request that wrote the record."""
        if self.has_milestone(registration_id, kind):
            return False

        self.db.add(Milestone(registration_id=registration_id, kind=kind, reached_at=utcnow()))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        return True

    def milestones(self, kind):
        return (
            self.db.query(Milestone)
            .filter_by(kind=kind)
            .order_by(Milestone.reached_at)
            .all()
        )

    # Settings

    def get_flag(self, key, default):
        setting = self.db.get(Setting, key)
        return setting.enabled if setting else default

    def set_flag(self, key, enabled):
        setting = self.db.get(Setting, key)
        if setting is None:
            setting = Setting(key=key, enabled=enabled)
            self.db.add(setting)
        setting.enabled = enabled
        setting.updated_at = utcnow()
        try:
            self.db.commit()
        except IntegrityError:
            # Lost an insert race; the row exists now, so update it
            self.db.rollback()
            setting = self.db.get(Setting, key)
            setting.enabled = enabled
            setting.updated_at = utcnow()
            self.db.commit()
        return enabled

    # Verified users

    def get_verified_user(self, registration_id):
        return self.db.get(VerifiedUser, registration_id)

    def add_verified_user(self, user):
        self.db.add(user)
        self.db.commit()
        return user

    def save(self):
        self.db.commit()
