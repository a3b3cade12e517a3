import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from hunt.catalog import TOTAL_ITEMS
from hunt.progress import THREE_ITEMS_THRESHOLD, on_count_changed
from hunt.ranking import LiveRankProvider, RankProvider
from hunt.repository import HuntRepository, normalize_registration_id
from hunt.verification import is_verified

logger = logging.getLogger(__name__)

PAYMENT_REQUIRED_MESSAGE = "Please pay the registration fee to access the hunt."


class ScanStatus(str, Enum):
    SUCCESS = "success"
    ALREADY_SCANNED = "already_scanned"
    NOT_FOUND = "not_found"
    REGISTRATION_REQUIRED = "registration_required"
    PAYMENT_REQUIRED = "payment_required"
    FAILED = "failed"


@dataclass
class ScanOutcome:
    status: ScanStatus
    message: str = ""
    item: Optional[dict] = None
    points_to: Optional[dict] = None
    scan_target: Optional[dict] = None
    collected: List[dict] = field(default_factory=list)
    count: int = 0
    complete: bool = False
    rank: Optional[int] = None
    scan_count: Optional[int] = None
    just_collected_third: bool = False
    milestones: List[str] = field(default_factory=list)

    @property
    def collected_ids(self):
        return [item["id"] for item in self.collected]

    def to_dict(self):
        body = {
            "status": self.status.value,
            "message": self.message,
        }
        if self.status == ScanStatus.REGISTRATION_REQUIRED and self.item:
            body.update({"component": self.item, "qr_code": self.scan_target})
        if self.status not in (ScanStatus.SUCCESS, ScanStatus.ALREADY_SCANNED):
            return body

        body.update({
            "component": self.item,
            "points_to_component": self.points_to,
            "qr_code": self.scan_target,
            "progress": self.count,
            "collected_components": self.collected,
            "complete": self.complete,
        })
        if self.status == ScanStatus.SUCCESS:
            body.update({
                "rank": self.rank,
                "scan_count": self.scan_count,
                "just_collected_third": self.just_collected_third,
            })
        return body


def item_to_dict(item):
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "image": item.image,
    }


def scan_target_to_dict(target):
    return {
        "id": target.id,
        "component_id": target.component_id,
        "points_to_component_id": target.points_to_component_id,
        "clue": target.clue,
        "hint": target.hint,
        "difficulty": target.difficulty,
        "location": target.location,
    }


def _found_outcome(status, message, repo, registration_id, item, target):
    collected = [item_to_dict(c) for c in repo.collected_items(registration_id)]
    points_to = repo.get_item(target.points_to_component_id)
    return ScanOutcome(
        status=status,
        message=message,
        item=item_to_dict(item),
        points_to=item_to_dict(points_to) if points_to else None,
        scan_target=scan_target_to_dict(target),
        collected=collected,
        count=len(collected),
        complete=len(collected) >= TOTAL_ITEMS,
    )


def process_scan(
    repo: HuntRepository,
    registration_id: str,
    scan_target_id: str,
    rank_provider: Optional[RankProvider] = None,
) -> ScanOutcome:
    """
    Collect the item behind a scan target for an already verified participant.

    A repeat scan reports current progress and changes nothing: no write, no
    milestone check, no rank.
    """
    rank_provider = rank_provider or LiveRankProvider()
    code = normalize_registration_id(registration_id)

    target = repo.get_scan_target(scan_target_id)
    if target is None:
        return ScanOutcome(status=ScanStatus.NOT_FOUND, message="Invalid QR code")

    item = repo.get_item(target.component_id)
    if item is None:
        return ScanOutcome(status=ScanStatus.NOT_FOUND, message="Component data not found")

    repo.get_or_create_participant(code)

    if item.id in repo.collected_item_ids(code):
        return _found_outcome(
            ScanStatus.ALREADY_SCANNED, "You've already collected this component", repo, code, item, target,
        )

    scan_count = repo.scan_count(target.id)
    new_count = repo.collect_item(code, item.id, target.id)
    if new_count is None:
        # A concurrent scan of the same code collected it first
        return _found_outcome(
            ScanStatus.ALREADY_SCANNED, "You've already collected this component", repo, code, item, target,
        )

    logger.info("Participant %s collected %s (%d/%d)", code, item.id, new_count, TOTAL_ITEMS)

    participant = repo.get_participant(code)
    rank = rank_provider.rank(repo, participant)
    milestones = on_count_changed(repo, code, new_count)

    outcome = _found_outcome(
        ScanStatus.SUCCESS, "Component collected successfully!", repo, code, item, target,
    )
    outcome.count = new_count
    outcome.complete = new_count >= TOTAL_ITEMS
    outcome.rank = rank
    outcome.scan_count = scan_count
    outcome.just_collected_third = new_count == THREE_ITEMS_THRESHOLD
    outcome.milestones = milestones
    return outcome


def handle_scan(
    repo: HuntRepository,
    registration_id: Optional[str],
    scan_target_id: str,
    rank_provider: Optional[RankProvider] = None,
) -> ScanOutcome:
    """Verification gate, then the scan itself. Store errors become a FAILED outcome."""
    try:
        if not registration_id or not registration_id.strip():
            target = repo.get_scan_target(scan_target_id)
            if target is None:
                return ScanOutcome(status=ScanStatus.NOT_FOUND, message="Invalid QR code")
            item = repo.get_item(target.component_id)
            return ScanOutcome(
                status=ScanStatus.REGISTRATION_REQUIRED,
                message="Registration required",
                item=item_to_dict(item) if item else None,
                scan_target=scan_target_to_dict(target),
            )

        if not is_verified(repo, registration_id):
            return ScanOutcome(status=ScanStatus.PAYMENT_REQUIRED, message=PAYMENT_REQUIRED_MESSAGE)

        return process_scan(repo, registration_id, scan_target_id, rank_provider)
    except SQLAlchemyError:
        logger.exception("Failed to process scan of %s", scan_target_id)
        repo.rollback()
        return ScanOutcome(status=ScanStatus.FAILED, message="Failed to process QR code")


def progress_check(repo: HuntRepository, registration_id: Optional[str]) -> ScanOutcome:
    """Current progress without scanning anything. Rank is not reported here."""
    try:
        if not registration_id or not registration_id.strip():
            return ScanOutcome(status=ScanStatus.REGISTRATION_REQUIRED, message="Registration required")

        if not is_verified(repo, registration_id):
            return ScanOutcome(status=ScanStatus.PAYMENT_REQUIRED, message=PAYMENT_REQUIRED_MESSAGE)

        code = normalize_registration_id(registration_id)
        repo.get_or_create_participant(code)
        collected = [item_to_dict(item) for item in repo.collected_items(code)]
        return ScanOutcome(
            status=ScanStatus.SUCCESS,
            collected=collected,
            count=len(collected),
            complete=len(collected) >= TOTAL_ITEMS,
        )
    except SQLAlchemyError:
        logger.exception("Failed to check progress")
        repo.rollback()
        return ScanOutcome(status=ScanStatus.FAILED, message="Failed to check progress")
