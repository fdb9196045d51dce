"""API tests for manual cleanup and timer control (/api/v1/sessions/cleanup)."""

from datetime import datetime, timedelta, timezone

from assessment_delivery.models.session import SessionStatus
from tests.conftest import count_results, create_session_via_api, make_result, make_session, reload_session

CLEANUP_URL = "/api/v1/sessions/cleanup"


def _now():
    return datetime.now(timezone.utc)


def _seed_three_active_two_expired(db):
    for i in range(3):
        make_session(db, student_id=f"student-live-{i}", now=_now() - timedelta(minutes=5))
    return [
        make_session(db, student_id=f"student-old-{i}", now=_now() - timedelta(hours=2))
        for i in range(2)
    ]


# ---------------------------------------------------------------------------
# GET: statistics
# ---------------------------------------------------------------------------


def test_stats_route_is_not_a_session_lookup(client):
    resp = client.get(CLEANUP_URL)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_sessions"] == 0
    assert data["cleanup_needed"] is False
    assert data["automated_cleanup_active"] is False


def test_stats_counts(client, db):
    _seed_three_active_two_expired(db)

    data = client.get(CLEANUP_URL).json()

    assert data["active_sessions"] == 3
    assert data["expired_sessions"] == 2
    assert data["total_sessions"] == 5
    assert data["cleanup_needed"] is True
    assert "details" not in data


def test_stats_with_details(client, db):
    expired = _seed_three_active_two_expired(db)

    data = client.get(CLEANUP_URL, params={"includeDetails": "true"}).json()

    assert sorted(data["details"]["expired_session_ids"]) == sorted(s.id for s in expired)
    assert data["details"]["abandoned_session_ids"] == []


# ---------------------------------------------------------------------------
# POST: sweep or force-clean one session
# ---------------------------------------------------------------------------


def test_sweep_deletes_old_completed_session(client, db):
    stale = make_session(
        db, student_id="student-done", status=SessionStatus.COMPLETED, now=_now() - timedelta(days=30)
    )

    data = client.post(CLEANUP_URL, json={}).json()

    assert data["performed"] is True
    assert data["stats"]["deleted_sessions"] == 1
    assert reload_session(db, stale.id) is None


def test_sweep_runs_on_empty_store(client):
    data = client.post(CLEANUP_URL, json={}).json()
    assert data["performed"] is True
    assert data["stats"]["total_cleaned"] == 0


def test_sweep_without_body(client, db):
    _seed_three_active_two_expired(db)
    resp = client.post(CLEANUP_URL)
    assert resp.status_code == 200
    assert resp.json()["stats"]["expired_sessions"] == 2


def test_sweep_expires_and_is_idempotent(client, db):
    expired = _seed_three_active_two_expired(db)

    first = client.post(CLEANUP_URL, json={}).json()
    second = client.post(CLEANUP_URL, json={"force": True}).json()

    assert first["stats"]["expired_sessions"] == 2
    assert first["stats"]["total_cleaned"] == 2
    assert second["stats"]["total_cleaned"] == 0
    for session in expired:
        assert reload_session(db, session.id).status == SessionStatus.EXPIRED


def test_force_clean_single_session(client, db):
    target = make_session(db, student_id="student-target", now=_now())
    keep = make_session(db, student_id="student-keep", now=_now())
    for _ in range(3):
        make_result(db, target)
    make_result(db, keep)

    resp = client.post(CLEANUP_URL, json={"sessionId": target.id})

    assert resp.status_code == 200
    assert resp.json()["session_id"] == target.id
    assert reload_session(db, target.id) is None
    assert count_results(db, target.id) == 0
    assert count_results(db, keep.id) == 1


def test_force_clean_unknown_session_404(client):
    resp = client.post(CLEANUP_URL, json={"sessionId": "missing-session"})
    assert resp.status_code == 404


def test_force_cleaned_session_is_gone_from_api(client):
    session = create_session_via_api(client).json()
    client.post(CLEANUP_URL, json={"session_id": session["id"]})
    assert client.get(f"/api/v1/sessions/{session['id']}").status_code == 404


# ---------------------------------------------------------------------------
# PUT: expire overdue sessions only
# ---------------------------------------------------------------------------


def test_update_expired_statuses(client, db):
    expired = _seed_three_active_two_expired(db)

    resp = client.put(CLEANUP_URL)

    assert resp.status_code == 200
    assert resp.json()["updated_sessions"] == 2
    assert all(reload_session(db, s.id).status == SessionStatus.EXPIRED for s in expired)
    assert client.put(CLEANUP_URL).json()["updated_sessions"] == 0


# ---------------------------------------------------------------------------
# PATCH: timer control
# ---------------------------------------------------------------------------


def test_timer_start_status_stop(client):
    started = client.patch(CLEANUP_URL, json={"action": "start"}).json()
    assert started["changed"] is True
    assert started["automated_cleanup_active"] is True
    assert started["interval_minutes"] == 30
    assert started["next_cleanup_at"] is not None

    again = client.patch(CLEANUP_URL, json={"action": "start"}).json()
    assert again["changed"] is False

    status = client.patch(CLEANUP_URL, json={"action": "status"}).json()
    assert status["automated_cleanup_active"] is True

    stopped = client.patch(CLEANUP_URL, json={"action": "stop"}).json()
    assert stopped["changed"] is True
    assert stopped["automated_cleanup_active"] is False
    assert client.get(CLEANUP_URL).json()["automated_cleanup_active"] is False


def test_timer_unknown_action_422(client):
    resp = client.patch(CLEANUP_URL, json={"action": "restart"})
    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_FAILED"
