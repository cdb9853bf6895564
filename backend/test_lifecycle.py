from datetime import timedelta

import pytest

import config
from conftest import NOW, STANDARD_REQUIREMENT, make_snapshot, seed_building, seed_vendor
from errors import InvalidSnapshot, InvalidTransition, NoActiveRequirement, NotFound, OverrideReasonRequired
from models import COI, AuditLog
from schemas.coi import COIFileInput, ReviewDecision
from schemas.common import COIStatus, TenantOwner, VendorOwner
from schemas.requirements import RequirementFields
from services import lifecycle
from services.requirements import activate_template


def audit_actions(db, coi_id):
    rows = db.query(AuditLog).filter(AuditLog.entity == "COI", AuditLog.entity_id == str(coi_id)) \
        .order_by(AuditLog.id).all()
    return [(row.action, row.actor_id) for row in rows]


def submit(db, building, snapshot=None, owner=None, policy=config.APPROVAL_ADVISORY, now=NOW):
    return lifecycle.submit(db, building.id, owner or VendorOwner(id=seed_vendor(db).id),
                            snapshot or make_snapshot(), now, policy=policy)


class TestSubmit:

    def test_submit_creates_pending_coi_with_advisory_evaluation(self, db, building, vendor, template):
        coi, evaluation, auto_applied = lifecycle.submit(
            db, building.id, VendorOwner(id=vendor.id), make_snapshot(gl_each_occurrence=500_000), NOW,
            files=[COIFileInput(url="https://bucket.example.com/uploads/coi.pdf")],
            policy=config.APPROVAL_ADVISORY,
        )

        assert coi.status == COIStatus.PENDING.value
        assert not auto_applied
        assert evaluation.tags == ["LIMIT_BELOW_MINIMUM:GL_OCCURRENCE"]
        assert coi.verdict == "FAIL"
        assert [r["tag"] for r in coi.reasons] == ["LIMIT_BELOW_MINIMUM:GL_OCCURRENCE"]
        assert coi.owner_type == "VENDOR" and coi.owner_id == vendor.id
        assert coi.template_id == template.id
        assert [f.kind for f in coi.files] == ["CERTIFICATE"]
        assert audit_actions(db, coi.id) == [("COI.SUBMITTED", "SYSTEM")]

    def test_tenant_owner(self, db, building, tenant, template):
        coi, _, _ = submit(db, building, owner=TenantOwner(id=tenant.id))

        assert (coi.owner_type, coi.owner_id) == ("TENANT", tenant.id)

    @pytest.mark.parametrize("owner,entity", [
        (VendorOwner(id=987654), "Vendor"),
        (TenantOwner(id=424242), "Tenant"),
    ])
    def test_submit_for_unknown_owner_is_not_found(self, db, building, template, owner, entity):
        with pytest.raises(NotFound) as exc_info:
            submit(db, building, owner=owner)

        assert exc_info.value.details == {"entity": entity, "entity_id": owner.id}
        assert db.query(COI).count() == 0

    def test_submit_for_unknown_building_is_not_found(self, db, vendor):
        with pytest.raises(NotFound):
            lifecycle.submit(db, 999, VendorOwner(id=vendor.id), make_snapshot(), NOW)

    def test_submit_without_active_template_cannot_evaluate(self, db, building):
        with pytest.raises(NoActiveRequirement):
            submit(db, building)
        assert db.query(COI).count() == 0

    def test_submit_rejects_invalid_snapshot(self, db, building, template):
        with pytest.raises(InvalidSnapshot) as exc_info:
            submit(db, building, make_snapshot(coverage_types=[]))

        assert "coverage_types" in exc_info.value.details["fields"]
        assert db.query(COI).count() == 0

    def test_submit_rejects_inverted_date_range(self, db, building, template):
        snapshot = make_snapshot(effective_date=NOW + timedelta(days=10), expiration_date=NOW)

        with pytest.raises(InvalidSnapshot) as exc_info:
            submit(db, building, snapshot)
        assert "expiration_date" in exc_info.value.problems

    def test_auto_approve_policy_approves_passing_coi(self, db, building, template):
        coi, evaluation, auto_applied = submit(db, building, policy=config.APPROVAL_AUTO_APPROVE)

        assert evaluation.passed
        assert auto_applied
        assert coi.status == COIStatus.APPROVED.value
        assert coi.reviewer_id == "SYSTEM"
        assert audit_actions(db, coi.id) == [("COI.SUBMITTED", "SYSTEM"), ("AUTO.APPROVED", "SYSTEM")]

    def test_auto_approve_policy_leaves_failing_coi_for_review(self, db, building, template):
        coi, evaluation, auto_applied = submit(db, building, make_snapshot(additional_insured=False),
                                               policy=config.APPROVAL_AUTO_APPROVE)

        assert not evaluation.passed
        assert not auto_applied
        assert coi.status == COIStatus.PENDING.value

    def test_auto_decide_policy_rejects_failing_coi(self, db, building, template):
        coi, _, auto_applied = submit(db, building, make_snapshot(additional_insured=False),
                                      policy=config.APPROVAL_AUTO_DECIDE)

        assert auto_applied
        assert coi.status == COIStatus.REJECTED.value
        assert audit_actions(db, coi.id)[-1] == ("AUTO.REJECTED", "SYSTEM")


class TestReview:

    def test_approving_failing_coi_requires_override_note(self, db, building, template):
        coi, _, _ = submit(db, building, make_snapshot(gl_each_occurrence=500_000))

        with pytest.raises(OverrideReasonRequired) as exc_info:
            lifecycle.review(db, coi.id, ReviewDecision.APPROVE, "reviewer-9", None, NOW)

        assert [r["tag"] for r in exc_info.value.reasons] == ["LIMIT_BELOW_MINIMUM:GL_OCCURRENCE"]
        db.expire_all()
        assert db.get(COI, coi.id).status == COIStatus.PENDING.value

    def test_blank_note_is_not_an_override_reason(self, db, building, template):
        coi, _, _ = submit(db, building, make_snapshot(gl_each_occurrence=500_000))

        with pytest.raises(OverrideReasonRequired):
            lifecycle.review(db, coi.id, ReviewDecision.APPROVE, "reviewer-9", "   ", NOW)

    def test_override_with_note_approves_and_audits_reasons(self, db, building, template):
        coi, _, _ = submit(db, building, make_snapshot(gl_each_occurrence=500_000))

        reviewed, evaluation = lifecycle.review(
            db, coi.id, ReviewDecision.APPROVE, "reviewer-9", "Excess policy on file covers the gap", NOW)

        assert reviewed.status == COIStatus.APPROVED.value
        assert reviewed.override is True
        assert reviewed.reviewer_id == "reviewer-9"
        assert reviewed.reviewed_at == NOW
        assert reviewed.review_notes == "Excess policy on file covers the gap"
        assert not evaluation.passed

        entry = db.query(AuditLog).filter(AuditLog.action == "REVIEW.APPROVED").one()
        assert entry.actor_id == "reviewer-9"
        assert entry.details["override"] is True
        assert [r["tag"] for r in entry.details["reasons"]] == ["LIMIT_BELOW_MINIMUM:GL_OCCURRENCE"]

    def test_passing_coi_approves_without_note(self, db, building, template):
        coi, _, _ = submit(db, building)

        reviewed, _ = lifecycle.review(db, coi.id, ReviewDecision.APPROVE, "reviewer-9", None, NOW)

        assert reviewed.status == COIStatus.APPROVED.value
        assert reviewed.override is False

    def test_reject_needs_no_note(self, db, building, template):
        coi, _, _ = submit(db, building)

        reviewed, _ = lifecycle.review(db, coi.id, ReviewDecision.REJECT, "reviewer-9", None, NOW)

        assert reviewed.status == COIStatus.REJECTED.value
        assert audit_actions(db, coi.id)[-1] == ("REVIEW.REJECTED", "reviewer-9")

    def test_decided_coi_cannot_be_reviewed_again(self, db, building, template):
        coi, _, _ = submit(db, building)
        lifecycle.review(db, coi.id, ReviewDecision.REJECT, "reviewer-9", "Wrong holder", NOW)

        with pytest.raises(InvalidTransition):
            lifecycle.review(db, coi.id, ReviewDecision.APPROVE, "reviewer-9", "Changed my mind", NOW)
        with pytest.raises(InvalidTransition):
            lifecycle.review(db, coi.id, ReviewDecision.REJECT, "reviewer-9", None, NOW)

    def test_review_reevaluates_against_current_template(self, db, building, template):
        coi, evaluation, _ = submit(db, building, make_snapshot(gl_each_occurrence=500_000))
        assert not evaluation.passed

        activate_template(db, building.id, STANDARD_REQUIREMENT.model_copy(update={"gl_occurrence_min": 500_000}),
                          actor_id="manager-1", now=NOW)
        reviewed, evaluation = lifecycle.review(db, coi.id, ReviewDecision.APPROVE, "reviewer-9", None, NOW)

        assert evaluation.passed
        assert reviewed.status == COIStatus.APPROVED.value
        assert reviewed.verdict == "PASS"
        assert reviewed.override is False

    def test_concurrent_reviews_only_one_wins(self, file_session_factory):
        setup = file_session_factory()
        building = seed_building(setup)
        activate_template(setup, building.id, STANDARD_REQUIREMENT, now=NOW - timedelta(days=1))
        coi, _, _ = submit(setup, building)
        setup.close()

        first, second = file_session_factory(), file_session_factory()
        try:
            # Both reviewers have the COI loaded as PENDING
            assert lifecycle.get_coi(first, coi.id).status == "PENDING"
            assert lifecycle.get_coi(second, coi.id).status == "PENDING"

            lifecycle.review(first, coi.id, ReviewDecision.APPROVE, "reviewer-a", None, NOW)
            with pytest.raises(InvalidTransition) as exc_info:
                lifecycle.review(second, coi.id, ReviewDecision.REJECT, "reviewer-b", None, NOW)
        finally:
            first.close()
            second.close()

        assert exc_info.value.current == "APPROVED"
        check = file_session_factory()
        assert check.get(COI, coi.id).status == "APPROVED"
        assert [a for a, _ in audit_actions(check, coi.id)] == ["COI.SUBMITTED", "REVIEW.APPROVED"]
        check.close()


class TestSweepExpirations:

    def test_expired_pending_coi_is_swept_once(self, db, building, template):
        coi, _, _ = submit(db, building, make_snapshot(expiration_date=NOW + timedelta(days=10)))
        later = NOW + timedelta(days=11)

        assert lifecycle.sweep_expirations(db, later) == [coi.id]
        assert lifecycle.sweep_expirations(db, later) == []

        db.expire_all()
        assert db.get(COI, coi.id).status == COIStatus.EXPIRED.value
        assert audit_actions(db, coi.id) == [("COI.SUBMITTED", "SYSTEM"), ("STATUS.EXPIRED", "SYSTEM")]

    def test_expiration_date_equal_to_now_expires(self, db, building, template):
        expires = NOW + timedelta(days=5)
        coi, _, _ = submit(db, building, make_snapshot(expiration_date=expires))

        assert lifecycle.sweep_expirations(db, expires) == [coi.id]

    def test_approved_expires_but_rejected_stays_rejected(self, db, building, template):
        approved, _, _ = submit(db, building, make_snapshot(expiration_date=NOW + timedelta(days=2)))
        rejected, _, _ = submit(db, building, make_snapshot(expiration_date=NOW + timedelta(days=2)))
        current, _, _ = submit(db, building)
        lifecycle.review(db, approved.id, ReviewDecision.APPROVE, "reviewer-9", None, NOW)
        lifecycle.review(db, rejected.id, ReviewDecision.REJECT, "reviewer-9", None, NOW)

        expired = lifecycle.sweep_expirations(db, NOW + timedelta(days=3))

        assert expired == [approved.id]
        db.expire_all()
        assert db.get(COI, rejected.id).status == COIStatus.REJECTED.value
        assert db.get(COI, current.id).status == COIStatus.PENDING.value

    def test_expired_coi_cannot_be_approved(self, db, building, template):
        coi, _, _ = submit(db, building, make_snapshot(expiration_date=NOW + timedelta(days=1)))
        lifecycle.sweep_expirations(db, NOW + timedelta(days=2))

        with pytest.raises(InvalidTransition):
            lifecycle.review(db, coi.id, ReviewDecision.APPROVE, "reviewer-9", "late", NOW + timedelta(days=2))


@pytest.mark.parametrize("current", list(COIStatus))
@pytest.mark.parametrize("target", list(COIStatus))
def test_transition_table_has_no_backward_edges(current, target):
    allowed = lifecycle.can_transition(current, target)

    if current in (COIStatus.REJECTED, COIStatus.EXPIRED):
        assert not allowed
    if target == COIStatus.PENDING:
        assert not allowed
    if current == COIStatus.APPROVED:
        assert allowed == (target == COIStatus.EXPIRED)


def test_random_call_sequences_never_leave_terminal_states(db):
    building = seed_building(db)
    activate_template(db, building.id, RequirementFields(gl_occurrence_min=1_000_000), now=NOW - timedelta(days=1))
    operations = [
        ("approve", ReviewDecision.APPROVE),
        ("reject", ReviewDecision.REJECT),
        ("sweep", None),
    ]
    for first in operations:
        for second in operations:
            coi, _, _ = submit(db, building, make_snapshot(expiration_date=NOW + timedelta(days=1)))
            seen = []
            for step, (name, decision) in enumerate((first, second)):
                now = NOW + timedelta(days=2 * step)
                try:
                    if name == "sweep":
                        lifecycle.sweep_expirations(db, now)
                    else:
                        lifecycle.review(db, coi.id, decision, "reviewer", "note", now)
                except InvalidTransition:
                    pass
                db.expire_all()
                seen.append(db.get(COI, coi.id).status)
            if seen[0] in ("REJECTED", "EXPIRED"):
                assert seen[1] == seen[0]
