import logging

from hunt.models import MILESTONE_FULL_COMPLETION, MILESTONE_THREE_ITEMS
from hunt.repository import HuntRepository, normalize_registration_id

logger = logging.getLogger(__name__)

THREE_ITEMS_THRESHOLD = 3
FULL_COMPLETION_THRESHOLD = 5


def on_count_changed(repo: HuntRepository, registration_id: str, new_count: int):
    """Record the milestones reached at new_count. Returns the kinds newly written."""
    recorded = []
    if new_count == THREE_ITEMS_THRESHOLD:
        if repo.record_milestone(registration_id, MILESTONE_THREE_ITEMS):
            recorded.append(MILESTONE_THREE_ITEMS)
    if new_count == FULL_COMPLETION_THRESHOLD:
        if repo.record_milestone(registration_id, MILESTONE_FULL_COMPLETION):
            recorded.append(MILESTONE_FULL_COMPLETION)

    for kind in recorded:
        logger.info("Participant %s reached milestone %s", registration_id, kind)
    return recorded


def has_reached_three(repo: HuntRepository, registration_id: str) -> bool:
    return repo.has_milestone(normalize_registration_id(registration_id), MILESTONE_THREE_ITEMS)


def has_reached_five(repo: HuntRepository, registration_id: str) -> bool:
    return repo.has_milestone(normalize_registration_id(registration_id), MILESTONE_FULL_COMPLETION)
