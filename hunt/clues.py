from hunt.catalog import FIRST_ITEM_ID
from hunt.repository import HuntRepository, normalize_registration_id


def clue_to_dict(target):
    return {
        "id": target.id,
        "component_id": target.component_id,
        "clue": target.clue,
        "hint": target.hint,
        "difficulty": target.difficulty,
    }


def first_clue(repo: HuntRepository):
    return repo.scan_target_for_item(FIRST_ITEM_ID)


def next_clue(repo: HuntRepository, registration_id: str):
    """Clue for the first catalog item the participant has not collected yet.

    Returns None once everything is collected.
    """
    collected = set(repo.collected_item_ids(normalize_registration_id(registration_id)))
    for item in repo.items():
        if item.id not in collected:
            return repo.scan_target_for_item(item.id)
    return None
