from datetime import datetime, timedelta, timezone

import pytest

from models import Application, ApplicationTag, StateTransition
from services import analytics, ledger, lifecycle, records
from services.errors import ConcurrentModification, Conflict, InvalidArgument, NotFound
from services.state_graph import ALLOWED_TRANSITIONS, AppState
from services.timeutil import as_utc

from conftest import OTHER_OWNER, OWNER

S = AppState
T0 = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def _ledger(db, app_id):
    db.expire_all()
    return db.query(StateTransition).filter_by(application_id=app_id).order_by(StateTransition.id).all()


# ---------- create ----------
def test_create_defaults_to_interested_with_creation_entry(db, make_app):
    app = make_app(now=T0)
    assert app.current_state == S.INTERESTED
    assert app.applied_at is None
    entries = _ledger(db, app.id)
    assert len(entries) == 1
    assert entries[0].from_state is None
    assert entries[0].to_state == S.INTERESTED
    assert entries[0].actor_user_id == OWNER
    assert as_utc(entries[0].transitioned_at) == T0


def test_create_in_applied_stamps_applied_at(make_app):
    app = make_app(initial_state="APPLIED", now=T0)
    assert app.current_state == S.APPLIED
    assert as_utc(app.applied_at) == T0


def test_create_keeps_explicit_applied_at(make_app):
    explicit = T0 - timedelta(days=3)
    app = make_app(initial_state=S.APPLIED, applied_at=explicit, now=T0)
    assert as_utc(app.applied_at) == explicit


def test_create_with_attributes(make_app):
    app = make_app(
        job_req_url="https://jobs.example.com/1", work_location="REMOTE", easy_apply=True,
        tags=["python", " remote ", "python", ""], hot=True, now=T0,
    )
    assert app.tags == ["python", "remote"]
    assert app.easy_apply is True
    assert app.cover_letter is False
    assert app.hot is True
    assert as_utc(app.hot_date) == T0
    assert app.job_description_md == ""


def test_create_rejects_company_of_another_owner(db, make_app):
    foreign = records.create_company(db, OTHER_OWNER, "Elsewhere")
    with pytest.raises(NotFound):
        make_app(company_id=foreign.id)
    assert db.query(Application).count() == 0
    assert db.query(StateTransition).count() == 0


def test_create_rejects_unknown_state_and_blank_title(make_app):
    with pytest.raises(InvalidArgument):
        make_app(initial_state="HIRED")
    with pytest.raises(InvalidArgument):
        make_app(job_title="   ")


# ---------- move ----------
@pytest.mark.parametrize("source", list(AppState))
@pytest.mark.parametrize("target", list(AppState))
def test_move_succeeds_iff_edge_exists(db, make_app, source, target):
    app = make_app(initial_state=source)
    if target in ALLOWED_TRANSITIONS[source]:
        entry = lifecycle.move_application(db, app.id, OWNER, target)
        assert entry.from_state == source
        assert entry.to_state == target
        assert len(_ledger(db, app.id)) == 2
    else:
        with pytest.raises(Conflict) as exc:
            lifecycle.move_application(db, app.id, OWNER, target)
        assert exc.value.current_state == source.value
        assert exc.value.target_state == target.value
        assert len(_ledger(db, app.id)) == 1
    db.expire_all()
    expected = target if target in ALLOWED_TRANSITIONS[source] else source
    assert records.get_owned_application(db, app.id, OWNER).current_state == expected


def test_conflict_lists_legal_states(db, make_app):
    app = make_app()
    with pytest.raises(Conflict) as exc:
        lifecycle.move_application(db, app.id, OWNER, "INTERVIEW")
    assert exc.value.allowed == ["APPLIED", "TRASH"]
    assert "Allowed: APPLIED, TRASH" in exc.value.message
    detail = exc.value.detail()
    assert detail["error"] == "conflict"
    assert detail["current_state"] == "INTERESTED"
    assert detail["target_state"] == "INTERVIEW"
    assert detail["terminal"] is False


def test_conflict_from_terminal_state(db, make_app):
    app = make_app(initial_state=S.REJECTED)
    with pytest.raises(Conflict) as exc:
        lifecycle.move_application(db, app.id, OWNER, S.INTERVIEW)
    assert exc.value.allowed == []
    assert exc.value.terminal
    assert "none (terminal state)" in exc.value.message


def test_move_scoped_to_owner(db, make_app):
    app = make_app()
    with pytest.raises(NotFound):
        lifecycle.move_application(db, app.id, OTHER_OWNER, S.APPLIED)
    with pytest.raises(NotFound):
        lifecycle.move_application(db, 9999, OWNER, S.APPLIED)


def test_move_rejects_unknown_state(db, make_app):
    app = make_app()
    with pytest.raises(InvalidArgument):
        lifecycle.move_application(db, app.id, OWNER, "SIGNED")


def test_move_into_applied_stamps_once(db, make_app):
    app = make_app(now=T0)
    moved_at = T0 + timedelta(days=1)
    entry = lifecycle.move_application(db, app.id, OWNER, S.APPLIED, note="sent resume", now=moved_at)
    assert entry.note == "sent resume"
    assert as_utc(entry.transitioned_at) == moved_at
    db.expire_all()
    app = records.get_owned_application(db, app.id, OWNER)
    assert as_utc(app.applied_at) == moved_at


def test_move_into_applied_keeps_existing_date(db, make_app):
    earlier = T0 - timedelta(days=10)
    app = make_app(applied_at=earlier, now=T0)
    lifecycle.move_application(db, app.id, OWNER, S.APPLIED, now=T0 + timedelta(days=1))
    db.expire_all()
    assert as_utc(records.get_owned_application(db, app.id, OWNER).applied_at) == earlier


def test_move_with_stale_expected_state(db, make_app):
    app = make_app()
    lifecycle.move_application(db, app.id, OWNER, S.APPLIED)
    with pytest.raises(ConcurrentModification) as exc:
        lifecycle.move_application(db, app.id, OWNER, S.TRASH, expected_state=S.INTERESTED)
    assert exc.value.detail()["retryable"] is True
    assert len(_ledger(db, app.id)) == 2


def test_projection_follows_write_order_not_edited_timestamps(db, make_app):
    app = make_app(now=T0)
    lifecycle.move_application(db, app.id, OWNER, S.APPLIED, now=T0 + timedelta(days=1))
    screening = lifecycle.move_application(db, app.id, OWNER, S.SCREENING, now=T0 + timedelta(days=2))
    # backdate the newest entry before every other one
    lifecycle.update_transition(db, screening.id, OWNER, transitioned_at=T0 - timedelta(days=30))
    db.expire_all()
    app = records.get_owned_application(db, app.id, OWNER)
    assert ledger.latest_written(db, app.id).to_state == app.current_state == S.SCREENING


# ---------- transition edits ----------
def test_update_transition_changes_only_timestamp_and_note(db, make_app):
    app = make_app(now=T0)
    entry = lifecycle.move_application(db, app.id, OWNER, S.APPLIED, note="first", now=T0)
    new_time = T0 - timedelta(days=2)
    updated = lifecycle.update_transition(db, entry.id, OWNER, transitioned_at=new_time, note="backdated")
    assert as_utc(updated.transitioned_at) == new_time
    assert updated.note == "backdated"
    assert (updated.from_state, updated.to_state) == (S.INTERESTED, S.APPLIED)

    cleared = lifecycle.update_transition(db, entry.id, OWNER, note="")
    assert cleared.note is None
    assert as_utc(cleared.transitioned_at) == new_time

    untouched = lifecycle.update_transition(db, entry.id, OWNER)
    assert untouched.note is None


def test_update_transition_scoped_by_parent_application(db, make_app):
    app = make_app()
    other = make_app(job_title="Other")
    entry = lifecycle.move_application(db, app.id, OWNER, S.APPLIED)
    with pytest.raises(NotFound):
        lifecycle.update_transition(db, entry.id, OTHER_OWNER, note="nope")
    with pytest.raises(NotFound):
        lifecycle.update_transition(db, entry.id, OWNER, note="nope", application_id=other.id)
    with pytest.raises(NotFound):
        lifecycle.update_transition(db, 12345, OWNER, note="nope")


# ---------- attribute patches ----------
def test_hot_flag_rules(db, make_app):
    app = make_app()
    first = T0
    app = lifecycle.update_attributes(db, app.id, OWNER, {"hot": True}, now=first)
    assert app.hot is True and as_utc(app.hot_date) == first

    # true -> true leaves the date alone
    app = lifecycle.update_attributes(db, app.id, OWNER, {"hot": True}, now=first + timedelta(days=5))
    assert as_utc(app.hot_date) == first

    app = lifecycle.update_attributes(db, app.id, OWNER, {"hot": False})
    assert app.hot is False and app.hot_date is None

    # false -> false is a no-op too
    app = lifecycle.update_attributes(db, app.id, OWNER, {"hot": False})
    assert app.hot is False and app.hot_date is None


def test_patch_fields_and_tags(db, make_app):
    app = make_app(tags=["python", "remote"])
    app = lifecycle.update_attributes(
        db, app.id, OWNER,
        {"job_title": "Staff Engineer", "tags": ["remote", "go"], "cover_letter": True, "work_location": "HYBRID"},
    )
    assert app.job_title == "Staff Engineer"
    assert app.tags == ["go", "remote"]
    assert app.cover_letter is True
    assert app.work_location.value == "HYBRID"
    assert app.current_state == S.INTERESTED
    assert db.query(ApplicationTag).count() == 2


def test_patch_cannot_touch_state(db, make_app):
    app = make_app()
    with pytest.raises(InvalidArgument):
        lifecycle.update_attributes(db, app.id, OWNER, {"current_state": "OFFER"})
    with pytest.raises(InvalidArgument):
        lifecycle.update_attributes(db, app.id, OWNER, {"job_title": ""})
    with pytest.raises(NotFound):
        lifecycle.update_attributes(db, app.id, OTHER_OWNER, {"job_title": "x"})


def test_patch_can_clear_applied_at(db, make_app):
    app = make_app(initial_state=S.APPLIED)
    app = lifecycle.update_attributes(db, app.id, OWNER, {"applied_at": None})
    assert app.applied_at is None


def test_patch_rejects_null_flags(db, make_app):
    app = make_app(hot=True, easy_apply=True, now=T0)
    for flag in ("easy_apply", "cover_letter", "hot"):
        with pytest.raises(InvalidArgument) as exc:
            lifecycle.update_attributes(db, app.id, OWNER, {flag: None})
        assert exc.value.field == flag
    db.expire_all()
    app = records.require_owned_application(db, app.id, OWNER)
    assert app.hot is True and as_utc(app.hot_date) == T0
    assert app.easy_apply is True


def test_offset_timestamps_are_normalized_to_utc(db, make_app):
    plus_five = timezone(timedelta(hours=5))
    app = make_app(applied_at=datetime(2026, 3, 2, 1, 0, tzinfo=plus_five))
    db.expire_all()
    assert as_utc(records.require_owned_application(db, app.id, OWNER).applied_at) == datetime(
        2026, 3, 1, 20, 0, tzinfo=timezone.utc
    )

    entry = lifecycle.move_application(db, app.id, OWNER, S.APPLIED, now=T0)
    lifecycle.update_transition(db, entry.id, OWNER, transitioned_at=datetime(2026, 3, 3, 4, 0, tzinfo=plus_five))
    db.expire_all()
    assert as_utc(ledger.find_owned(db, entry.id, OWNER).transitioned_at) == datetime(
        2026, 3, 2, 23, 0, tzinfo=timezone.utc
    )


# ---------- delete ----------
def test_remove_cascades_ledger_and_tags(db, make_app):
    app = make_app(tags=["a", "b"])
    keep = make_app(job_title="Keep")
    lifecycle.move_application(db, app.id, OWNER, S.APPLIED)
    lifecycle.remove_application(db, app.id, OWNER)
    db.expire_all()
    assert records.get_owned_application(db, app.id, OWNER) is None
    assert db.query(StateTransition).filter_by(application_id=app.id).count() == 0
    assert db.query(ApplicationTag).count() == 0
    assert len(_ledger(db, keep.id)) == 1
    with pytest.raises(NotFound):
        lifecycle.remove_application(db, app.id, OWNER)
    with pytest.raises(NotFound):
        lifecycle.move_application(db, app.id, OWNER, S.TRASH)


def test_remove_scoped_to_owner(db, make_app):
    app = make_app()
    with pytest.raises(NotFound):
        lifecycle.remove_application(db, app.id, OTHER_OWNER)
    assert records.get_owned_application(db, app.id, OWNER) is not None


# ---------- the whole pipeline ----------
def test_end_to_end_rejection(db, make_app):
    app = make_app(now=T0)
    lifecycle.move_application(db, app.id, OWNER, S.APPLIED, now=T0 + timedelta(hours=1))
    db.expire_all()
    assert records.get_owned_application(db, app.id, OWNER).applied_at is not None
    pairs = [(e.from_state, e.to_state) for e in _ledger(db, app.id)]
    assert pairs == [(None, S.INTERESTED), (S.INTERESTED, S.APPLIED)]

    lifecycle.move_application(db, app.id, OWNER, S.SCREENING, now=T0 + timedelta(days=3))
    lifecycle.move_application(db, app.id, OWNER, S.REJECTED, now=T0 + timedelta(days=9))
    with pytest.raises(Conflict) as exc:
        lifecycle.move_application(db, app.id, OWNER, S.INTERVIEW)
    assert exc.value.allowed == []

    assert analytics.dashboard_stats(db, OWNER) == {"applied": 1, "interviewed": 1, "passed_on": 1}
    assert len(_ledger(db, app.id)) == 4
