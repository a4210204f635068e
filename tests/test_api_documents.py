"""
Tests for /api/documents templates and generation.
"""
import pytest

from tests.conftest import auth_headers

OFFER_LETTER = {
    "document_name": "Offer Letter",
    "template_type": "offer",
    "description": "Standard offer",
    "content": "Dear {{full_name}}, welcome to {{company_name}} as {{designation}} from {{start_date}}.",
    "field_tags": [
        {"tag": "full_name", "label": "Full Name"},
        {"tag": "designation", "label": "Designation"},
        {"tag": "start_date", "label": "Start Date"},
    ],
}


@pytest.fixture
def template_id(client, tenant):
    response = client.post("/api/documents/templates", headers=auth_headers(tenant.hr), json=OFFER_LETTER)
    return response.get_json()["template"]["id"]


class TestTemplates:

    def test_create_and_list(self, client, tenant, template_id):
        templates = client.get("/api/documents/templates", headers=auth_headers(tenant.hr)).get_json()["templates"]
        assert [t["id"] for t in templates] == [template_id]
        assert templates[0]["field_tags"][0] == {"tag": "full_name", "label": "Full Name"}

    def test_filter_by_type(self, client, tenant, template_id):
        response = client.get("/api/documents/templates?template_type=relieving", headers=auth_headers(tenant.hr))
        assert response.get_json()["templates"] == []

    @pytest.mark.parametrize("field_tags", [
        [],
        [{"tag": "name"}],
        [{"tag": "bad tag", "label": "Bad"}],
        [{"tag": "name", "label": "A"}, {"tag": "name", "label": "B"}],
    ])
    def test_invalid_field_tags(self, client, tenant, field_tags):
        response = client.post("/api/documents/templates", headers=auth_headers(tenant.hr), json={
            **OFFER_LETTER, "field_tags": field_tags,
        })
        assert response.status_code == 400

    def test_update(self, client, tenant, template_id):
        response = client.put(f"/api/documents/templates/{template_id}", headers=auth_headers(tenant.hr), json={
            "document_name": "Offer Letter v2",
        })
        assert response.status_code == 200
        assert response.get_json()["template"]["document_name"] == "Offer Letter v2"

    def test_blank_content_rejected(self, client, tenant, template_id):
        response = client.put(f"/api/documents/templates/{template_id}", headers=auth_headers(tenant.hr), json={
            "content": "   ",
        })
        assert response.status_code == 400

    def test_delete_hides_template(self, client, tenant, template_id):
        assert client.delete(f"/api/documents/templates/{template_id}", headers=auth_headers(tenant.hr)).status_code == 200
        assert client.get(f"/api/documents/templates/{template_id}", headers=auth_headers(tenant.hr)).status_code == 404

    def test_employee_forbidden(self, client, tenant):
        assert client.get("/api/documents/templates", headers=auth_headers(tenant.employee)).status_code == 403


class TestGeneration:

    def test_generate_for_employee(self, client, tenant, template_id):
        response = client.post("/api/documents/generate", headers=auth_headers(tenant.hr), json={
            "template_id": template_id,
            "employee_id": tenant.employee.id,
            "field_values": {"start_date": "2025-04-01"},
        })

        assert response.status_code == 201
        document = response.get_json()["document"]
        assert document["content"] == (
            f"Dear {tenant.employee.full_name}, welcome to Acme Corp as Engineer from 2025-04-01."
        )
        assert document["employee_id"] == tenant.employee.id
        assert document["document_name"] == "Offer Letter"

    def test_missing_values_fall_back_to_labels(self, client, tenant, template_id):
        response = client.post("/api/documents/generate", headers=auth_headers(tenant.hr), json={
            "template_id": template_id,
            "field_values": {"full_name": "Jane Roe"},
        })
        content = response.get_json()["document"]["content"]
        assert content == "Dear Jane Roe, welcome to {{company_name}} as [Designation] from [Start Date]."

    def test_explicit_values_override_employee_record(self, client, tenant, template_id):
        response = client.post("/api/documents/generate", headers=auth_headers(tenant.hr), json={
            "template_id": template_id,
            "employee_id": tenant.employee.id,
            "field_values": {"designation": "Principal Engineer", "start_date": "2025-05-01"},
        })
        assert "as Principal Engineer from" in response.get_json()["document"]["content"]

    def test_unknown_template(self, client, tenant):
        response = client.post("/api/documents/generate", headers=auth_headers(tenant.hr), json={"template_id": 999})
        assert response.status_code == 404

    def test_field_values_must_be_object(self, client, tenant, template_id):
        response = client.post("/api/documents/generate", headers=auth_headers(tenant.hr), json={
            "template_id": template_id, "field_values": ["a", "b"],
        })
        assert response.status_code == 400

    def test_generated_listing(self, client, tenant, template_id):
        document_id = client.post("/api/documents/generate", headers=auth_headers(tenant.hr), json={
            "template_id": template_id, "employee_id": tenant.employee.id,
        }).get_json()["document"]["id"]

        listed = client.get(
            f"/api/documents/generated?employee_id={tenant.employee.id}", headers=auth_headers(tenant.hr)
        ).get_json()["documents"]
        assert [d["id"] for d in listed] == [document_id]
        assert "content" not in listed[0]

        single = client.get(f"/api/documents/generated/{document_id}", headers=auth_headers(tenant.hr)).get_json()
        assert single["document"]["content"].startswith("Dear ")
