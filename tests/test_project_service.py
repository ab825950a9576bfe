"""Tests for project, milestone and payment-structure services.

Coverage:
  1. base info / team structure updates recompute creation_status
  2. milestone upsert: create, update by id, validation, clamping, delete
  3. deleting a milestone turns its installments into manual triggers
  4. payment structure: percentages must total 100 (60+30 rejected, 40+60 accepted)
  5. milestone / date / event trigger validation
  6. amounts derived from fee × percentage, omitted installments removed
  7. a fully populated project reaches creation_status "completed"
"""

from decimal import Decimal

import pytest

import bantal.services.document_service as docs
import bantal.services.milestone_service as milestones
import bantal.services.payment_service as payments
import bantal.services.project_service as projects
from bantal.core.exceptions import ConflictError, NotFoundError, ValidationError
from bantal.models.project import PaymentInstallment
from bantal.services.finalization_service import finalize_document


def _make_project(client_id, number="SPK/100/2025"):
    wa = docs.create_document("SPK", {
        "document_number": number,
        "name": "ERP rollout",
        "client_id": client_id,
        "description": "ERP rollout for Sinar Jaya",
        "start_date": "2025-01-01",
        "end_date": "2025-03-31",
        "project_fee": "30000000",
        "payment_installment": 2,
    })
    result = finalize_document(wa["id"])
    return projects.get_project(result["project_id"])


@pytest.fixture()
def project(customer):
    return _make_project(customer.id)


# ═════════════════════════════════════════════════════════════════════════════
# Project sections
# ═════════════════════════════════════════════════════════════════════════════


class TestProjectSections:
    def test_lookup_by_document(self, project):
        assert projects.get_project_by_document(project.source_document_id).id == project.id
        with pytest.raises(NotFoundError):
            projects.get_project_by_document("missing")

    def test_duplicate_project_for_document(self, project):
        master = docs.get_document(project.source_document_id)
        with pytest.raises(ConflictError):
            projects.create_from_work_agreement(master, None, "monthly")

    def test_initial_completion(self, project):
        report = projects.get_completion(project.id)
        assert report["sections"]["base_info"] == 100.0
        assert report["sections"]["milestones"] == 0.0
        assert report["sections"]["payment_structure"] == 25.0
        assert report["creation_status"] == "in_progress"
        assert report["project_id"] == project.id

    def test_update_base_info(self, project):
        updated = projects.update_base_info(project.id, {"project_name": "ERP rollout v2", "project_description": ""})
        assert updated.project_name == "ERP rollout v2"
        assert updated.project_description is None
        assert projects.get_completion(project.id)["sections"]["base_info"] == 50.0

    def test_blank_name_rejected(self, project):
        with pytest.raises(ValidationError):
            projects.update_base_info(project.id, {"project_name": " "})

    def test_team_structure_merge_and_remove(self, project, identity):
        projects.update_team_structure(project.id, {"project_lead": identity.id, "engineer": ["a", "b"]})
        projects.update_team_structure(project.id, {"analyst": ["c"]})
        team = projects.get_project(project.id).team_structure
        assert team == {"project_lead": identity.id, "engineer": ["a", "b"], "analyst": ["c"]}

        projects.update_team_structure(project.id, {"engineer": []})
        assert "engineer" not in projects.get_project(project.id).team_structure
        assert projects.get_completion(project.id)["sections"]["team_structure"] == 100.0

    def test_team_structure_invalid(self, project):
        with pytest.raises(ValidationError):
            projects.update_team_structure(project.id, {"engineer": "a"})
        with pytest.raises(ValidationError):
            projects.update_team_structure(project.id, ["not", "a", "dict"])

    def test_progress_status(self, project):
        assert projects.update_progress_status(project.id, "at_risk").progress_status == "at_risk"
        with pytest.raises(ValidationError):
            projects.update_progress_status(project.id, "lost")

    def test_list_filters(self, project):
        assert projects.list_projects({"billing_cadence": project.billing_cadence}).count() == 1
        assert projects.list_projects({"creation_status": "completed"}).count() == 0
        with pytest.raises(ValidationError):
            projects.list_projects({"progress_status": "lost"})


# ═════════════════════════════════════════════════════════════════════════════
# Milestones
# ═════════════════════════════════════════════════════════════════════════════


class TestMilestones:
    def test_create_and_update(self, project):
        ms = milestones.upsert_milestone(project.id, {"name": "Blueprint", "due_date": "2025-02-01"})
        assert ms.order_index == 0
        assert ms.status == "pending"

        second = milestones.upsert_milestone(project.id, {"name": "Go-live"})
        assert second.order_index == 1

        updated = milestones.upsert_milestone(project.id, {"id": ms.id, "status": "completed", "completion_percentage": 150})
        assert updated.id == ms.id
        assert updated.name == "Blueprint"
        assert updated.completion_percentage == 100
        assert [m.name for m in milestones.list_milestones(project.id)] == ["Blueprint", "Go-live"]

    def test_name_required(self, project):
        with pytest.raises(ValidationError, match="name is required"):
            milestones.upsert_milestone(project.id, {"description": "no name"})

    def test_invalid_update_changes_nothing(self, project):
        ms = milestones.upsert_milestone(project.id, {"name": "Blueprint"})
        with pytest.raises(ValidationError):
            milestones.upsert_milestone(project.id, {"id": ms.id, "name": "Renamed", "priority": "urgent"})
        assert milestones.list_milestones(project.id)[0].name == "Blueprint"

    def test_negative_percentage_clamped(self):
        assert milestones.clamp_percentage(-10) == 0
        assert milestones.clamp_percentage(None) == 0
        assert milestones.clamp_percentage("55") == 55

    def test_unknown_milestone(self, project):
        with pytest.raises(NotFoundError):
            milestones.upsert_milestone(project.id, {"id": "nope", "name": "x"})

    def test_milestone_of_other_project(self, project, customer):
        other = _make_project(customer.id, number="SPK/200/2025")
        ms = milestones.upsert_milestone(other.id, {"name": "Other"})
        with pytest.raises(NotFoundError):
            milestones.delete_milestone(project.id, ms.id)

    def test_delete_detaches_installments(self, project):
        ms = milestones.upsert_milestone(project.id, {"name": "Blueprint"})
        payments.update_payment_structure(project.id, {"installments": [
            {"percentage": 50, "trigger_type": "milestone", "trigger_value": ms.id},
            {"percentage": 50, "trigger_type": "manual"},
        ]})
        milestones.delete_milestone(project.id, ms.id)

        assert milestones.list_milestones(project.id) == []
        first = PaymentInstallment.query.filter_by(installment_number=1).one()
        assert first.trigger_type == "manual"
        assert first.milestone_id is None
        assert first.trigger_value is None


# ═════════════════════════════════════════════════════════════════════════════
# Payment structure
# ═════════════════════════════════════════════════════════════════════════════


class TestPaymentStructure:
    def test_percentages_must_total_100(self, project):
        with pytest.raises(ValidationError) as exc:
            payments.update_payment_structure(project.id, {"installments": [
                {"percentage": 60}, {"percentage": 30},
            ]})
        assert "got 90%" in str(exc.value)
        assert PaymentInstallment.query.count() == 0

    def test_valid_installments_accepted(self, project):
        result = payments.update_payment_structure(project.id, {"installments": [
            {"percentage": 40, "description": "DP"},
            {"percentage": 60, "description": "Final"},
        ]})
        assert result["total_percentage"] == 100.0
        amounts = [i["amount"] for i in result["installments"]]
        assert amounts == [12000000.0, 18000000.0]
        assert [i["installment_number"] for i in result["installments"]] == [1, 2]

    def test_tolerance(self, project):
        result = payments.update_payment_structure(project.id, {"installments": [
            {"percentage": "33.33"}, {"percentage": "33.33"}, {"percentage": "33.34"},
        ]})
        assert len(result["installments"]) == 3

    def test_percentage_required(self, project):
        with pytest.raises(ValidationError):
            payments.update_payment_structure(project.id, {"installments": [{"amount": 100}]})

    def test_milestone_trigger_must_belong_to_project(self, project, customer):
        other = _make_project(customer.id, number="SPK/300/2025")
        foreign = milestones.upsert_milestone(other.id, {"name": "Foreign"})
        with pytest.raises(ValidationError):
            payments.update_payment_structure(project.id, {"installments": [
                {"percentage": 100, "trigger_type": "milestone", "trigger_value": foreign.id},
            ]})

    def test_date_trigger_sets_due_date(self, project):
        result = payments.update_payment_structure(project.id, {"installments": [
            {"percentage": 100, "trigger_type": "date", "trigger_value": "2025-03-31"},
        ]})
        assert result["installments"][0]["due_date"] == "2025-03-31"
        with pytest.raises(ValidationError):
            payments.update_payment_structure(project.id, {"installments": [
                {"percentage": 100, "trigger_type": "date", "trigger_value": "someday"},
            ]})

    def test_event_trigger(self, project):
        payments.update_payment_structure(project.id, {"installments": [
            {"percentage": 100, "trigger_type": "event", "trigger_value": "document_submission"},
        ]})
        with pytest.raises(ValidationError):
            payments.update_payment_structure(project.id, {"installments": [
                {"percentage": 100, "trigger_type": "event", "trigger_value": "payday"},
            ]})

    def test_unknown_trigger_type(self, project):
        with pytest.raises(ValidationError):
            payments.update_payment_structure(project.id, {"installments": [
                {"percentage": 100, "trigger_type": "lunar"},
            ]})

    def test_replace_removes_omitted(self, project):
        first = payments.update_payment_structure(project.id, {"installments": [
            {"percentage": 50}, {"percentage": 50},
        ]})
        keep_id = first["installments"][0]["id"]
        second = payments.update_payment_structure(project.id, {"installments": [
            {"id": keep_id, "percentage": 100, "description": "Lump sum"},
        ]})
        assert [i["id"] for i in second["installments"]] == [keep_id]
        assert second["installments"][0]["description"] == "Lump sum"
        assert PaymentInstallment.query.count() == 1

    def test_unknown_installment_id(self, project):
        with pytest.raises(NotFoundError):
            payments.update_payment_structure(project.id, {"installments": [{"id": "ghost", "percentage": 100}]})

    def test_basic_info(self, project):
        result = payments.update_payment_structure(project.id, {
            "project_fee": "50000000", "currency": "usd", "bank_name": "BCA",
        })
        assert result["currency"] == "USD"
        assert result["project_fee"] == 50000000.0
        with pytest.raises(ValidationError):
            payments.update_payment_structure(project.id, {"currency": "RP"})
        with pytest.raises(ValidationError):
            payments.update_payment_structure(project.id, {"project_fee": 0})

    def test_installment_status_and_delete(self, project):
        result = payments.update_payment_structure(project.id, {"installments": [{"percentage": 100}]})
        inst_id = result["installments"][0]["id"]
        inst = payments.update_installment_status(project.id, inst_id, "paid", notes="Transfer received")
        assert inst.status == "paid"
        assert inst.notes == "Transfer received"
        with pytest.raises(ValidationError):
            payments.update_installment_status(project.id, inst_id, "lost")

        payments.delete_installment(project.id, inst_id)
        assert payments.get_payment_structure(project.id)["installments"] == []


class TestCreationStatusLifecycle:
    def test_fully_populated_project_completes(self, project, identity):
        projects.update_team_structure(project.id, {"project_lead": identity.id, "engineer": [identity.id]})
        ms = milestones.upsert_milestone(project.id, {
            "name": "Go-live", "description": "Production cut-over", "due_date": "2025-03-31",
        })
        payments.update_payment_structure(project.id, {
            "bank_name": "BCA",
            "account_number": "0123456789",
            "account_name": "PT Bantal Nusantara",
            "installments": [
                {"percentage": 30, "trigger_type": "event", "trigger_value": "document_submission",
                 "description": "Down payment"},
                {"percentage": 70, "trigger_type": "milestone", "trigger_value": ms.id,
                 "description": "On go-live"},
            ],
        })
        report = projects.get_completion(project.id)
        assert report["overall"] == 100.0
        assert report["creation_status"] == "completed"

        milestones.upsert_milestone(project.id, {"id": ms.id, "description": ""})
        assert projects.get_project(project.id).creation_status == "in_progress"

    def test_amount_rounding(self, project):
        payments.update_payment_structure(project.id, {"installments": [
            {"percentage": "33.33"}, {"percentage": "66.67"},
        ]})
        amounts = sorted(Decimal(str(i.amount)) for i in PaymentInstallment.query.all())
        assert amounts == [Decimal("9999000.00"), Decimal("20001000.00")]
