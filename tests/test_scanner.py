from datetime import timedelta

from sqlalchemy.exc import OperationalError

from hunt.models import Milestone, Participant, Scan, utcnow
from hunt import repository
from hunt.ranking import LiveRankProvider
from hunt.repository import HuntRepository
from hunt.scanner import ScanStatus, handle_scan, process_scan, progress_check
from hunt.verification import set_verification_enabled

from conftest import (
    ALL_TARGETS,
    BATTERY_TARGET,
    LED_TARGET,
    PARTICIPANT,
    RESISTOR_TARGET,
    add_paid_payment,
)


def milestone_count(db, kind):
    return db.query(Milestone).filter_by(registration_id=PARTICIPANT, kind=kind).count()


def test_unverified_participant_gets_payment_required_without_state_change(repo, db):
    outcome = handle_scan(repo, PARTICIPANT, LED_TARGET)

    assert outcome.status == ScanStatus.PAYMENT_REQUIRED
    assert db.get(Participant, PARTICIPANT) is None
    assert db.query(Scan).count() == 0


def test_missing_registration_id_requires_registration(repo):
    outcome = handle_scan(repo, None, LED_TARGET)

    assert outcome.status == ScanStatus.REGISTRATION_REQUIRED
    assert outcome.item["id"] == "led"
    assert outcome.scan_target["id"] == LED_TARGET
    assert outcome.to_dict()["component"]["name"] == "LED"
    assert "progress" not in outcome.to_dict()


def test_unknown_scan_target_is_not_found(repo):
    add_paid_payment()
    outcome = handle_scan(repo, PARTICIPANT, "not-a-real-code")
    assert outcome.status == ScanStatus.NOT_FOUND


def test_first_scan_collects_item(repo):
    add_paid_payment()

    outcome = handle_scan(repo, PARTICIPANT, LED_TARGET)

    assert outcome.status == ScanStatus.SUCCESS
    assert outcome.collected_ids == ["led"]
    assert outcome.count == 1
    assert outcome.complete is False
    assert outcome.rank == 1
    assert outcome.scan_count == 0
    assert outcome.item["id"] == "led"
    assert outcome.points_to["id"] == "resistor"


def test_repeat_scan_is_idempotent(repo, db):
    add_paid_payment()
    handle_scan(repo, PARTICIPANT, LED_TARGET)

    outcome = handle_scan(repo, PARTICIPANT, LED_TARGET)

    assert outcome.status == ScanStatus.ALREADY_SCANNED
    assert outcome.collected_ids == ["led"]
    assert outcome.count == 1
    assert outcome.complete is False
    assert outcome.rank is None
    assert outcome.milestones == []
    assert db.query(Scan).count() == 1


def test_full_hunt_records_each_milestone_once(repo, db):
    add_paid_payment()

    outcomes = [handle_scan(repo, PARTICIPANT, target) for target in ALL_TARGETS[:3]]
    assert outcomes[-1].count == 3
    assert outcomes[-1].just_collected_third is True
    assert outcomes[-1].milestones == ["three_items"]
    assert milestone_count(db, "three_items") == 1
    assert milestone_count(db, "full_completion") == 0

    # Repeats at the threshold fire nothing
    handle_scan(repo, PARTICIPANT, ALL_TARGETS[2])
    assert milestone_count(db, "three_items") == 1

    outcomes = [handle_scan(repo, PARTICIPANT, target) for target in ALL_TARGETS[3:]]
    final = outcomes[-1]
    assert final.count == 5
    assert final.complete is True
    assert final.collected_ids == ["led", "resistor", "breadboard", "jumper-wires", "battery"]
    assert final.milestones == ["full_completion"]

    for target in ALL_TARGETS:
        again = handle_scan(repo, PARTICIPANT, target)
        assert again.status == ScanStatus.ALREADY_SCANNED
        assert again.complete is True

    assert milestone_count(db, "three_items") == 1
    assert milestone_count(db, "full_completion") == 1


def test_collection_order_is_scan_order(repo):
    set_verification_enabled(repo, False)

    handle_scan(repo, PARTICIPANT, BATTERY_TARGET)
    outcome = handle_scan(repo, PARTICIPANT, RESISTOR_TARGET)

    assert outcome.collected_ids == ["battery", "resistor"]


def test_last_clue_wraps_to_first_item(repo):
    set_verification_enabled(repo, False)
    outcome = handle_scan(repo, PARTICIPANT, BATTERY_TARGET)
    assert outcome.points_to["id"] == "led"


def test_duplicate_append_is_rejected_by_store(repo, db):
    repo.get_or_create_participant(PARTICIPANT)
    repo.get_item("led")

    assert repo.collect_item(PARTICIPANT, "led", LED_TARGET) == 1
    assert repo.collect_item(PARTICIPANT, "led", LED_TARGET) is None
    assert repo.collected_item_ids(PARTICIPANT) == ["led"]
    assert db.get(Participant, PARTICIPANT).progress == 1


def test_lost_race_reports_already_scanned(repo, db, mocker):
    set_verification_enabled(repo, False)
    handle_scan(repo, PARTICIPANT, LED_TARGET)
    # Simulate the concurrent request reading state before the other one committed
    mocker.patch.object(HuntRepository, "collected_item_ids", return_value=[])

    outcome = process_scan(repo, PARTICIPANT, LED_TARGET)

    assert outcome.status == ScanStatus.ALREADY_SCANNED
    assert outcome.count == 1
    assert db.query(Scan).count() == 1


def test_store_failure_is_a_failed_outcome(repo, mocker):
    set_verification_enabled(repo, False)
    mocker.patch.object(
        HuntRepository,
        "get_scan_target",
        side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
    )

    outcome = handle_scan(repo, PARTICIPANT, LED_TARGET)

    assert outcome.status == ScanStatus.FAILED


def test_rank_orders_by_count_then_earlier_last_scan(repo, db):
    now = utcnow()
    db.add_all([
        Participant(registration_id="FIVE", progress=5, last_scan_at=now - timedelta(minutes=1), created_at=now),
        Participant(registration_id="THREE-EARLY", progress=3, last_scan_at=now - timedelta(minutes=10), created_at=now),
        Participant(registration_id="THREE-LATE", progress=3, last_scan_at=now - timedelta(minutes=5), created_at=now),
        Participant(registration_id="ONE", progress=1, last_scan_at=now - timedelta(minutes=30), created_at=now),
    ])
    db.commit()

    provider = LiveRankProvider()
    rank = {code: provider.rank(repo, db.get(Participant, code))
            for code in ("FIVE", "THREE-EARLY", "THREE-LATE", "ONE")}

    assert rank == {"FIVE": 1, "THREE-EARLY": 2, "THREE-LATE": 3, "ONE": 4}


def test_scan_rank_counts_participants_ahead(repo, db):
    set_verification_enabled(repo, False)
    db.add(Participant(registration_id="LEADER", progress=2, last_scan_at=utcnow(), created_at=utcnow()))
    db.commit()

    outcome = handle_scan(repo, PARTICIPANT, LED_TARGET)

    assert outcome.rank == 2


def test_progress_check_reports_without_rank(repo):
    add_paid_payment()
    handle_scan(repo, PARTICIPANT, LED_TARGET)

    outcome = progress_check(repo, "24f01a4909")

    assert outcome.status == ScanStatus.SUCCESS
    assert outcome.count == 1
    assert outcome.collected_ids == ["led"]
    assert outcome.rank is None


def test_progress_check_requires_payment(repo):
    assert progress_check(repo, PARTICIPANT).status == ScanStatus.PAYMENT_REQUIRED


def test_catalog_is_seeded_once_per_repository(repo, mocker):
    set_verification_enabled(repo, False)
    seed = mocker.spy(repository, "seed_catalog")

    handle_scan(repo, PARTICIPANT, LED_TARGET)
    handle_scan(repo, PARTICIPANT, RESISTOR_TARGET)

    assert seed.call_count == 1
