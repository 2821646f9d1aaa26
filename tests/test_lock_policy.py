"""
Testes da política de bloqueio do vídeo.
"""
from datetime import datetime, timedelta, timezone

from hypothesis import given, strategies as st

from app.services.lock_policy import evaluate, format_remaining_days, lock_message

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@given(
    days=st.integers(min_value=0, max_value=19),
    extra_seconds=st.integers(min_value=0, max_value=86399)
)
def test_locked_inside_window(days, extra_seconds):
    first_upload = NOW - timedelta(days=days, seconds=extra_seconds)
    status = evaluate(first_upload, now=NOW)

    assert status.is_locked is True
    assert status.can_delete is False
    assert status.remaining_days == 20 - days


@given(days=st.integers(min_value=20, max_value=5000))
def test_unlocked_after_window(days):
    status = evaluate(NOW - timedelta(days=days), now=NOW)

    assert status.is_locked is False
    assert status.can_delete is True
    assert status.remaining_days == 0


def test_exactly_twenty_days_is_unlocked():
    status = evaluate(NOW - timedelta(days=20), now=NOW)
    assert status.is_locked is False
    assert status.remaining_days == 0


def test_one_second_before_twenty_days_is_still_locked():
    status = evaluate(NOW - timedelta(days=20) + timedelta(seconds=1), now=NOW)
    assert status.is_locked is True
    assert status.remaining_days == 1


def test_absent_timestamp_is_unlocked():
    status = evaluate(None, now=NOW)
    assert status.is_locked is False
    assert status.remaining_days == 0
    assert status.first_upload_at is None


def test_naive_timestamp_treated_as_utc():
    naive = (NOW - timedelta(days=3)).replace(tzinfo=None)
    status = evaluate(naive, now=NOW)
    assert status.remaining_days == 17
    assert status.first_upload_at.tzinfo is not None


def test_future_timestamp_never_exceeds_lock_days():
    status = evaluate(NOW + timedelta(days=2), now=NOW)
    assert status.remaining_days == 20


def test_custom_lock_days():
    status = evaluate(NOW - timedelta(days=3), now=NOW, lock_days=5)
    assert status.remaining_days == 2


def test_format_remaining_days():
    assert format_remaining_days(0) == "Sem período de bloqueio"
    assert format_remaining_days(1) == "1 dia restante"
    assert format_remaining_days(17) == "17 dias restantes"


def test_lock_message_mentions_remaining_days():
    locked = evaluate(NOW - timedelta(days=3), now=NOW)
    assert "17 dias" in lock_message(locked)
    assert lock_message(evaluate(None, now=NOW)) == "O vídeo pode ser removido."
