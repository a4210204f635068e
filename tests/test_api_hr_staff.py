"""
Tests for the /api/hr-staff endpoints.
"""
from tests.conftest import auth_headers, leave_type_id, next_monday

NEW_HR = {"full_name": "Harriet Hr", "email": "harriet@acme.com", "password": "Harriet1!"}


class TestCreateHrStaff:

    def test_admin_creates_hr_manager(self, client, tenant):
        response = client.post("/api/hr-staff", headers=auth_headers(tenant.admin), json={**NEW_HR, "role": "hr_manager"})

        assert response.status_code == 201
        assert response.get_json()["user"]["role"] == "hr_manager"

    def test_hr_manager_cannot_create_hr_manager(self, client, tenant):
        response = client.post("/api/hr-staff", headers=auth_headers(tenant.hr_manager), json={**NEW_HR, "role": "hr_manager"})
        assert response.status_code == 403

    def test_hr_manager_creates_hr(self, client, tenant):
        response = client.post("/api/hr-staff", headers=auth_headers(tenant.hr_manager), json=NEW_HR)

        assert response.status_code == 201
        user = response.get_json()["user"]
        assert user["role"] == "hr"
        assert user["company_id"] == tenant.company_id

    def test_hr_cannot_create_hr(self, client, tenant):
        response = client.post("/api/hr-staff", headers=auth_headers(tenant.hr), json=NEW_HR)
        assert response.status_code == 403

    def test_duplicate_email(self, client, tenant):
        response = client.post("/api/hr-staff", headers=auth_headers(tenant.admin), json={**NEW_HR, "email": tenant.hr.email})
        assert response.status_code == 409

    def test_invalid_role(self, client, tenant):
        response = client.post("/api/hr-staff", headers=auth_headers(tenant.admin), json={**NEW_HR, "role": "employee"})
        assert response.status_code == 400


class TestManageHrStaff:

    def test_list(self, client, tenant):
        response = client.get("/api/hr-staff", headers=auth_headers(tenant.hr_manager))

        assert response.status_code == 200
        ids = {u["id"] for u in response.get_json()["hr_staff"]}
        assert ids == {tenant.hr.id, tenant.hr_manager.id}

    def test_admin_updates_role(self, client, tenant):
        response = client.put(f"/api/hr-staff/{tenant.employee.id}/role", headers=auth_headers(tenant.admin), json={
            "role": "team_lead",
        })
        assert response.status_code == 200
        assert response.get_json()["user"]["role"] == "team_lead"

    def test_only_admin_updates_roles(self, client, tenant):
        response = client.put(f"/api/hr-staff/{tenant.employee.id}/role", headers=auth_headers(tenant.hr_manager), json={
            "role": "hr",
        })
        assert response.status_code == 403

    def test_cannot_change_own_role(self, client, tenant):
        response = client.put(f"/api/hr-staff/{tenant.admin.id}/role", headers=auth_headers(tenant.admin), json={
            "role": "employee",
        })
        assert response.status_code == 400

    def test_deactivate_user(self, client, tenant):
        response = client.put(f"/api/hr-staff/{tenant.hr.id}/status", headers=auth_headers(tenant.hr_manager), json={
            "is_active": False,
        })
        assert response.status_code == 200

        login = client.post("/api/auth/login", json={"email": tenant.hr.email, "password": tenant.hr.password})
        assert login.status_code == 401

    def test_dashboard(self, client, tenant):
        monday = next_monday().isoformat()
        client.post("/api/leaves/requests", headers=auth_headers(tenant.employee), json={
            "leave_type_id": leave_type_id(client, tenant.employee), "start_date": monday,
            "end_date": monday, "reason": "Errand",
        })

        response = client.get("/api/hr-staff/dashboard", headers=auth_headers(tenant.hr_manager))

        assert response.status_code == 200
        data = response.get_json()
        assert data["total_employees"] == 2
        assert data["total_hrs"] == 2
        assert data["pending_leaves"] == 1
        assert len(data["recent_leaves"]) == 1

    def test_reassign_employee(self, client, tenant):
        response = client.put("/api/hr-staff/employees/reassign", headers=auth_headers(tenant.hr_manager), json={
            "employee_id": tenant.employee.id, "new_hr_id": tenant.hr.id,
        })
        assert response.status_code == 200
        assert response.get_json()["hr_owner_id"] == tenant.hr.id

    def test_reassign_to_non_hr(self, client, tenant):
        response = client.put("/api/hr-staff/employees/reassign", headers=auth_headers(tenant.hr_manager), json={
            "employee_id": tenant.employee.id, "new_hr_id": tenant.team_lead.id,
        })
        assert response.status_code == 404
