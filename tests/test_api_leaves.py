"""
Tests for the leave workflow: /api/leaves and /api/team-lead.
"""
from datetime import date, timedelta
from decimal import Decimal

from workflowhr.database import LeaveRequest, LeaveType
from tests.conftest import auth_headers, create_user, leave_type_id, next_monday


def submit(client, user, start, end, name="Casual Leave", **extra):
    return client.post("/api/leaves/requests", headers=auth_headers(user), json={
        "leave_type_id": leave_type_id(client, user, name),
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "reason": "Family event",
        **extra,
    })


class TestLeaveTypes:

    def test_hr_creates_leave_type(self, client, tenant):
        response = client.post("/api/leaves/types", headers=auth_headers(tenant.hr), json={
            "name": "Study Leave", "max_days_per_year": 5, "is_paid": False,
        })
        assert response.status_code == 201
        assert response.get_json()["leave_type"]["is_paid"] is False

    def test_allowance_defaults_to_annual_setting(self, client, tenant):
        response = client.post("/api/leaves/types", headers=auth_headers(tenant.hr), json={"name": "Wellness Leave"})
        assert response.status_code == 201
        assert response.get_json()["leave_type"]["max_days_per_year"] == 12

    def test_duplicate_name(self, client, tenant):
        response = client.post("/api/leaves/types", headers=auth_headers(tenant.hr), json={
            "name": "Casual Leave", "max_days_per_year": 5,
        })
        assert response.status_code == 409

    def test_employee_cannot_create(self, client, tenant):
        response = client.post("/api/leaves/types", headers=auth_headers(tenant.employee), json={
            "name": "Nap Leave", "max_days_per_year": 365,
        })
        assert response.status_code == 403

    def test_deactivated_type_hidden(self, client, tenant):
        type_id = leave_type_id(client, tenant.hr, "Sick Leave")
        assert client.delete(f"/api/leaves/types/{type_id}", headers=auth_headers(tenant.hr)).status_code == 200

        names = [t["name"] for t in client.get("/api/leaves/types", headers=auth_headers(tenant.employee)).get_json()["leave_types"]]
        assert "Sick Leave" not in names

    def test_update_type(self, client, tenant):
        type_id = leave_type_id(client, tenant.hr)
        response = client.put(f"/api/leaves/types/{type_id}", headers=auth_headers(tenant.hr), json={"max_days_per_year": 20})
        assert response.status_code == 200
        assert response.get_json()["leave_type"]["max_days_per_year"] == 20


class TestLeaveRequests:

    def test_submit_request(self, client, tenant):
        monday = next_monday()
        response = submit(client, tenant.employee, monday, monday + timedelta(days=2))

        assert response.status_code == 201
        leave = response.get_json()["leave_request"]
        assert leave["status"] == "pending"
        assert leave["total_days"] == 3.0
        assert leave["team_lead_id"] == tenant.team_lead.id

    def test_weekend_excluded_from_total(self, client, tenant):
        monday = next_monday()
        # Friday to the following Monday
        response = submit(client, tenant.employee, monday + timedelta(days=4), monday + timedelta(days=7))
        assert response.get_json()["leave_request"]["total_days"] == 2.0

    def test_half_day(self, client, tenant):
        monday = next_monday()
        response = submit(client, tenant.employee, monday, monday + timedelta(days=1), half_day=True, half_day_type="end")
        assert response.get_json()["leave_request"]["total_days"] == 1.5

    def test_weekend_only_rejected(self, client, tenant):
        saturday = next_monday() + timedelta(days=5)
        response = submit(client, tenant.employee, saturday, saturday + timedelta(days=1))
        assert response.status_code == 400

    def test_past_start_rejected(self, client, tenant):
        yesterday = date.today() - timedelta(days=1)
        response = submit(client, tenant.employee, yesterday, yesterday + timedelta(days=3))
        assert response.status_code == 400
        assert "past" in response.get_json()["message"]

    def test_request_spanning_two_years_rejected(self, client, tenant):
        next_year = date.today().year + 1
        response = submit(client, tenant.employee, date(next_year, 12, 29), date(next_year + 1, 1, 2))
        assert response.status_code == 400
        assert "calendar years" in response.get_json()["message"]

    def test_end_before_start_rejected(self, client, tenant):
        monday = next_monday()
        response = submit(client, tenant.employee, monday + timedelta(days=2), monday)
        assert response.status_code == 400

    def test_overlap_rejected(self, client, tenant):
        monday = next_monday()
        submit(client, tenant.employee, monday, monday + timedelta(days=2))
        response = submit(client, tenant.employee, monday + timedelta(days=1), monday + timedelta(days=3))
        assert response.status_code == 400
        assert "overlapping" in response.get_json()["message"]

    def test_insufficient_balance(self, client, tenant):
        monday = next_monday()
        # Three working weeks of casual leave against a 12 day allowance
        response = submit(client, tenant.employee, monday, monday + timedelta(days=18))
        assert response.status_code == 400
        assert "Insufficient leave balance" in response.get_json()["message"]

    def test_unpaid_leave_ignores_balance(self, client, tenant):
        monday = next_monday()
        response = submit(client, tenant.employee, monday, monday + timedelta(days=18), name="Unpaid Leave")
        assert response.status_code == 201

    def test_employee_sees_only_own_requests(self, client, tenant):
        monday = next_monday()
        submit(client, tenant.employee, monday, monday)
        submit(client, tenant.team_lead, monday, monday)

        own = client.get("/api/leaves/requests", headers=auth_headers(tenant.employee)).get_json()["leave_requests"]
        everything = client.get("/api/leaves/requests", headers=auth_headers(tenant.hr)).get_json()["leave_requests"]

        assert {lr["user_id"] for lr in own} == {tenant.employee.id}
        assert len(everything) == 2

    def test_hr_filters(self, client, tenant):
        monday = next_monday()
        submit(client, tenant.employee, monday, monday)
        submit(client, tenant.team_lead, monday, monday)

        response = client.get(
            f"/api/leaves/requests?employee_id={tenant.team_lead.id}&status=pending",
            headers=auth_headers(tenant.hr),
        )
        assert [lr["user_id"] for lr in response.get_json()["leave_requests"]] == [tenant.team_lead.id]

    def test_calculate_preview(self, client, tenant):
        monday = next_monday()
        response = client.get(
            f"/api/leaves/calculate?start_date={monday.isoformat()}&end_date={(monday + timedelta(days=6)).isoformat()}",
            headers=auth_headers(tenant.employee),
        )
        assert response.status_code == 200
        assert response.get_json()["total_days"] == 5.0


class TestWorkflow:

    def test_team_lead_then_hr_approval(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday + timedelta(days=2)).get_json()["leave_request"]["id"]

        pending = client.get("/api/team-lead/leave-requests", headers=auth_headers(tenant.team_lead)).get_json()
        assert [lr["id"] for lr in pending["leave_requests"]] == [leave_id]

        lead_decision = client.post(
            f"/api/team-lead/leave-requests/{leave_id}/decision",
            headers=auth_headers(tenant.team_lead),
            json={"action": "approve", "comment": "Fine by me"},
        )
        assert lead_decision.status_code == 200
        assert lead_decision.get_json()["leave_request"]["status"] == "approved_by_team_lead"
        assert lead_decision.get_json()["leave_request"]["team_lead_comment"] == "Fine by me"

        hr_decision = client.put(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.hr), json={
            "status": "approved", "hr_remarks": "Enjoy",
        })
        assert hr_decision.status_code == 200
        leave = hr_decision.get_json()["leave_request"]
        assert leave["status"] == "approved"
        assert leave["approved_by"] == tenant.hr.id
        assert leave["hr_remarks"] == "Enjoy"

        balances = client.get(
            f"/api/leaves/balance?year={monday.year}", headers=auth_headers(tenant.employee)
        ).get_json()["balances"]
        casual = next(b for b in balances if b["leave_type"] == "Casual Leave")
        assert casual["used_days"] == 3.0
        assert casual["remaining_days"] == 9.0

        history = client.get(f"/api/leaves/history/{tenant.employee.id}", headers=auth_headers(tenant.employee)).get_json()["history"]
        assert [h["action"] for h in history] == ["hr_approved", "team_lead_approved", "applied"]

    def test_decided_request_cannot_be_decided_again(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday).get_json()["leave_request"]["id"]
        client.put(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.hr), json={"status": "approved"})

        again = client.put(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.hr), json={"status": "rejected"})

        assert again.status_code == 400
        assert "already been approved" in again.get_json()["message"]

    def test_team_lead_rejection_is_final(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday).get_json()["leave_request"]["id"]

        rejected = client.post(
            f"/api/team-lead/leave-requests/{leave_id}/decision",
            headers=auth_headers(tenant.team_lead),
            json={"action": "reject", "comment": "Release week"},
        )
        assert rejected.get_json()["leave_request"]["status"] == "rejected"

        hr_attempt = client.put(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.hr), json={"status": "approved"})
        assert hr_attempt.status_code == 400

    def test_team_lead_cannot_act_after_forwarding(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday).get_json()["leave_request"]["id"]
        url = f"/api/team-lead/leave-requests/{leave_id}/decision"
        client.post(url, headers=auth_headers(tenant.team_lead), json={"action": "approve"})

        second = client.post(url, headers=auth_headers(tenant.team_lead), json={"action": "reject"})
        assert second.status_code == 400

    def test_other_team_lead_cannot_decide(self, client, tenant):
        other_lead = create_user(tenant.company_id, "team_lead")
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday).get_json()["leave_request"]["id"]

        response = client.post(
            f"/api/team-lead/leave-requests/{leave_id}/decision",
            headers=auth_headers(other_lead),
            json={"action": "approve"},
        )
        assert response.status_code == 404

    def test_invalid_decision_action(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday).get_json()["leave_request"]["id"]
        response = client.post(
            f"/api/team-lead/leave-requests/{leave_id}/decision",
            headers=auth_headers(tenant.team_lead),
            json={"action": "maybe"},
        )
        assert response.status_code == 400

    def test_hr_cannot_approve_own_request(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.hr, monday, monday).get_json()["leave_request"]["id"]

        response = client.put(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.hr), json={"status": "approved"})
        assert response.status_code == 403

        by_manager = client.put(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.hr_manager), json={"status": "approved"})
        assert by_manager.status_code == 200

    def test_employee_cannot_use_hr_decision(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday).get_json()["leave_request"]["id"]
        response = client.put(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.employee), json={"status": "approved"})
        assert response.status_code == 403

    def test_cancel_pending_request(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday).get_json()["leave_request"]["id"]

        assert client.delete(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.employee)).status_code == 200
        again = client.delete(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.employee))
        assert again.status_code == 400

        # Cancelled dates are free again
        assert submit(client, tenant.employee, monday, monday).status_code == 201

    def test_cannot_cancel_someone_elses_request(self, client, tenant):
        monday = next_monday()
        leave_id = submit(client, tenant.employee, monday, monday).get_json()["leave_request"]["id"]
        response = client.delete(f"/api/leaves/requests/{leave_id}", headers=auth_headers(tenant.team_lead))
        assert response.status_code == 404

    def test_summary(self, client, tenant):
        monday = next_monday()
        submit(client, tenant.employee, monday, monday)
        response = client.get("/api/leaves/summary", headers=auth_headers(tenant.hr))
        assert response.get_json()["summary"]["pending"] == 1
        assert response.get_json()["total"] == 1

    def test_history_of_others_requires_hr(self, client, tenant):
        response = client.get(f"/api/leaves/history/{tenant.team_lead.id}", headers=auth_headers(tenant.employee))
        assert response.status_code == 403


class TestTeamLeadViews:

    def test_members_and_dashboard(self, client, tenant):
        members = client.get("/api/team-lead/members", headers=auth_headers(tenant.team_lead)).get_json()["members"]
        assert [m["id"] for m in members] == [tenant.employee.id]

        monday = next_monday()
        submit(client, tenant.employee, monday, monday)
        dashboard = client.get("/api/team-lead/dashboard", headers=auth_headers(tenant.team_lead)).get_json()
        assert dashboard["team_members"] == 1
        assert dashboard["pending_requests"] == 1
        assert len(dashboard["recent_requests"]) == 1

    def test_employee_cannot_open_team_lead_views(self, client, tenant):
        assert client.get("/api/team-lead/members", headers=auth_headers(tenant.employee)).status_code == 403


def test_unpaid_days_for_month(client, tenant, db):
    unpaid = db.query(LeaveType).filter(
        LeaveType.company_id == tenant.company_id, LeaveType.name == "Unpaid Leave"
    ).first()
    db.add(LeaveRequest(
        company_id=tenant.company_id,
        user_id=tenant.employee.id,
        leave_type_id=unpaid.id,
        start_date=date(2025, 2, 27),
        end_date=date(2025, 3, 4),
        total_days=Decimal("4"),
        status="approved",
    ))
    db.commit()

    response = client.get(
        f"/api/leaves/unpaid-days?employee_id={tenant.employee.id}&month=3&year=2025",
        headers=auth_headers(tenant.hr),
    )

    assert response.status_code == 200
    assert response.get_json()["unpaid_leave_days"] == 2.0
