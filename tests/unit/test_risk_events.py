"""Unit tests for the risk event ledger."""

from datetime import date

from riskdesk.risk import RiskEvent, RiskEventLedger, RiskEventType


def test_mark_and_query(ledger):
    day = date(2024, 3, 1)

    assert not ledger.has_emitted("u1", day, RiskEventType.DAILY_LOSS_WARNING)
    ledger.mark_emitted("u1", day, RiskEventType.DAILY_LOSS_WARNING)

    assert ledger.has_emitted("u1", day, RiskEventType.DAILY_LOSS_WARNING)
    assert not ledger.has_emitted("u1", day, RiskEventType.LIMIT_REACHED)
    assert ledger.emitted_types("u1", day) == {RiskEventType.DAILY_LOSS_WARNING}
    assert len(ledger) == 1


def test_start_day_rollover_prunes_previous_day(ledger):
    """Test moving a user to a new day drops only that user's old keys."""
    day1, day2 = date(2024, 3, 1), date(2024, 3, 2)
    ledger.start_day("u1", day1)
    ledger.start_day("u2", day1)
    ledger.mark_emitted("u1", day1, RiskEventType.DAILY_LOSS_WARNING)
    ledger.mark_emitted("u2", day1, RiskEventType.DAILY_LOSS_WARNING)

    assert ledger.start_day("u1", day1) is False
    assert ledger.start_day("u1", day2) is True

    assert ledger.emitted_types("u1", day1) == set()
    assert ledger.emitted_types("u2", day1) == {RiskEventType.DAILY_LOSS_WARNING}


def test_first_start_day_is_not_rollover(ledger):
    assert ledger.start_day("u1", date(2024, 3, 1)) is False


def test_clear(ledger):
    day = date(2024, 3, 1)
    ledger.mark_emitted("u1", day, RiskEventType.DAILY_LOSS_WARNING)
    ledger.mark_emitted("u2", day, RiskEventType.DAILY_LOSS_WARNING)

    ledger.clear("u1")
    assert len(ledger) == 1

    ledger.clear()
    assert len(ledger) == 0


def test_event_to_dict():
    """Test the persisted record shape."""
    event = RiskEvent(
        user_id="u1",
        event_date=date(2024, 3, 1),
        event_type=RiskEventType.LIMIT_REACHED,
        message="Daily loss limit reached. Trading disabled for today.",
        threshold_value=100,
        trigger_value=104.5,
        metadata={"loss_limit": 500.0},
    )

    data = event.to_dict()

    assert data["event_date"] == "2024-03-01"
    assert data["event_type"] == "limit_reached"
    assert data["threshold_value"] == 100
    assert data["metadata"] == {"loss_limit": 500.0}
    assert data["created_at"].endswith("+00:00")


def test_stale_day_is_ignored(ledger):
    """Test an older day neither rolls the user back nor prunes today's keys."""
    day1, day2 = date(2024, 3, 1), date(2024, 3, 2)
    ledger.start_day("u1", day2)
    ledger.mark_emitted("u1", day2, RiskEventType.LIMIT_REACHED)

    assert ledger.is_stale("u1", day1)
    assert ledger.start_day("u1", day1) is False

    assert ledger.emitted_types("u1", day2) == {RiskEventType.LIMIT_REACHED}
    assert not ledger.is_stale("u1", day2)


def test_unorderable_days_are_never_stale(ledger):
    ledger.start_day("u1", date(2024, 3, 2))

    assert not ledger.is_stale("u1", "2024-03-01")
    assert not ledger.is_stale("u2", date(2024, 3, 1))
