import logging

from sqlalchemy.exc import IntegrityError

from hunt.models import Item, ScanTarget

logger = logging.getLogger(__name__)

TOTAL_ITEMS = 5

DEFAULT_ITEMS = [
    {
        "id": "led",
        "name": "LED",
        "description": "Light Emitting Diode - the basic building block of many electronic projects.",
        "image": "led.png",
    },
    {
        "id": "resistor",
        "name": "Resistor",
        "description": "Controls the flow of electrical current in a circuit.",
        "image": "resistor.png",
    },
    {
        "id": "breadboard",
        "name": "Breadboard",
        "description": "A construction base for prototyping electronics without soldering.",
        "image": "breadboard.png",
    },
    {
        "id": "jumper-wires",
        "name": "Jumper Wires",
        "description": "Wires that connect components on the breadboard.",
        "image": "jumper-wires.png",
    },
    {
        "id": "battery",
        "name": "Battery",
        "description": "Provides power to your circuit.",
        "image": "battery.png",
    },
]

# Printed on the physical QR codes, one per item in catalog order
SCAN_TARGET_IDS = [
    "550e8400-e29b-41d4-a716-446655440000",
    "6ba7b810-9dad-11d1-80b4-00c04fd430c8",
    "9b1deb4d-3b7d-4bad-9bdd-2b0d7b3dcb6d",
    "1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed",
    "f47ac10b-58cc-4372-a567-0e02b2c3d479",
]

CLUES = [
    {
        "clue": "On the right side where fees are paid, a shining star is sleeping on the stairs, "
                "not up, not down, but in the middle heart.",
        "hint": "Look on the middle step for a bright sticker.",
        "difficulty": "Easy",
    },
    {
        "clue": "Where everyone eats lunch, a tiny wall that fights the electric flow is dancing near "
                "the place where food plates are born, but not where you sit.",
        "hint": "Check near the food counter.",
        "difficulty": "Above Easy",
    },
    {
        "clue": "Where many books stay quiet, a big square bed where circuits grow is hiding under "
                "the king of tables, where old books whisper secrets.",
        "hint": "Look under the biggest table in the old books area.",
        "difficulty": "Hard",
    },
    {
        "clue": "On the 1st floor where smart machines are made, thin snakes that tie machines together "
                "are sleeping behind a magic box where a tiny star blinks like a heartbeat.",
        "hint": "Find a box with a blinking light on a table.",
        "difficulty": "Super Hard",
    },
    {
        "clue": "At the center of campus where grass grows under open sky, a box that feeds power to "
                "machines is hiding where the ground kisses the feet of the tallest green giant.",
        "hint": "Look at the bottom of the biggest tree.",
        "difficulty": "Difficult, Slightly Easier than Super Hard",
    },
]

FIRST_ITEM_ID = DEFAULT_ITEMS[0]["id"]


def default_items():
    return [Item(position=index, **data) for index, data in enumerate(DEFAULT_ITEMS)]


def default_scan_targets():
    targets = []
    for index, target_id in enumerate(SCAN_TARGET_IDS):
        # Each clue leads to the next item, wrapping around after the last
        points_to = (index + 1) % TOTAL_ITEMS
        targets.append(ScanTarget(
            id=target_id,
            component_id=DEFAULT_ITEMS[index]["id"],
            points_to_component_id=DEFAULT_ITEMS[points_to]["id"],
            location=f"Location {index + 1}",
            **CLUES[index],
        ))
    return targets


def seed_catalog(db):
    """
    Insert the fixed item and scan-target catalogs if the tables are empty.

    Two requests seeding at once is harmless: the loser hits the primary key
    constraint, rolls back and reads what the winner wrote.
    """
    if db.query(Item).count() == 0:
        try:
            db.add_all(default_items())
            db.commit()
            logger.info("Initialized item catalog with %d entries", TOTAL_ITEMS)
        except IntegrityError:
            db.rollback()

    if db.query(ScanTarget).count() == 0:
        try:
            db.add_all(default_scan_targets())
            db.commit()
            logger.info("Initialized scan target catalog with %d entries", TOTAL_ITEMS)
        except IntegrityError:
            db.rollback()
