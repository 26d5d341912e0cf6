"""Tests for the form builder endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from formdesk.db.models import Form


def _form_payload(**overrides):
    payload = {
        "title": "Application Form",
        "description": "Test form",
        "settings": {"require_login": False, "confirmation_message": "Got it"},
        "appearance": {"theme": "dark"},
        "fields": [
            {
                "name": "Email",
                "label": "Email",
                "type": "email",
                "validation": {"required": True},
            },
            {
                "name": "size",
                "label": "Size",
                "type": "radio",
                "options": [{"label": "Small", "value": "s"}, {"label": "Large", "value": "l"}],
            },
        ],
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_admin_creates_form(admin_client, admin_user):
    create_res = await admin_client.post("/forms", json=_form_payload())
    assert create_res.status_code == 201
    data = create_res.json()

    assert data["title"] == "Application Form"
    assert data["created_by"] == str(admin_user.id)
    assert data["is_active"] is True
    assert data["is_accepting"] is True
    assert data["settings"]["require_login"] is False
    assert data["settings"]["confirmation_message"] == "Got it"
    assert data["appearance"]["theme"] == "dark"
    assert data["field_count"] == 2
    assert [f["name"] for f in data["fields"]] == ["email", "size"]
    assert [f["order"] for f in data["fields"]] == [0, 1]
    assert data["fields"][0]["validation"]["required"] is True
    assert data["stats"]["total_submissions"] == 0


@pytest.mark.asyncio
async def test_create_form_rejects_invalid_fields(admin_client):
    no_options = _form_payload(fields=[{"name": "pick", "label": "Pick", "type": "dropdown"}])
    res = await admin_client.post("/forms", json=no_options)
    assert res.status_code == 422

    duplicate = _form_payload(
        fields=[
            {"name": "email", "label": "Email", "type": "email"},
            {"name": "EMAIL", "label": "Other email", "type": "email"},
        ]
    )
    res = await admin_client.post("/forms", json=duplicate)
    assert res.status_code == 422

    bad_window = _form_payload(
        settings={"start_date": "2026-02-01T00:00:00Z", "end_date": "2026-01-01T00:00:00Z"}
    )
    res = await admin_client.post("/forms", json=bad_window)
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_non_admin_cannot_create_form(user_client):
    res = await user_client.post("/forms", json=_form_payload())
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_anonymous_cannot_create_form(client):
    res = await client.post("/forms", json=_form_payload())
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_mutations_require_csrf_header(app, admin_auth):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={admin_auth.cookie_name: admin_auth.token},
    ) as no_csrf:
        res = await no_csrf.post("/forms", json=_form_payload())
    assert res.status_code == 403
    assert "CSRF" in res.json()["detail"]


@pytest.mark.asyncio
async def test_public_get_hides_inactive_forms(client, admin_client, make_form, db):
    form = make_form(fields=[{"name": "name", "label": "Name", "type": "text"}])

    res = await client.get(f"/forms/{form.id}")
    assert res.status_code == 200
    assert [f["name"] for f in res.json()["fields"]] == ["name"]

    toggle_res = await admin_client.post(f"/forms/{form.id}/toggle-status")
    assert toggle_res.status_code == 200
    assert toggle_res.json()["is_active"] is False

    res = await client.get(f"/forms/{form.id}")
    assert res.status_code == 404

    res = await admin_client.get(f"/forms/{form.id}")
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_list_forms_for_public_and_admin(client, admin_client, make_form, db):
    make_form(title="Customer survey")
    hidden = make_form(title="Retired survey")
    await admin_client.post(f"/forms/{hidden.id}/toggle-status")

    res = await client.get("/forms", params={"active_only": "all"})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 1
    assert body["items"][0]["title"] == "Customer survey"

    res = await admin_client.get("/forms", params={"active_only": "all", "search": "survey"})
    assert res.json()["total"] == 2

    res = await admin_client.get("/forms", params={"active_only": "false"})
    assert [f["title"] for f in res.json()["items"]] == ["Retired survey"]

    res = await admin_client.get("/forms", params={"active_only": "sometimes"})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_list_forms_paginates(client, make_form):
    for i in range(3):
        make_form(title=f"Form {i}")

    res = await client.get("/forms", params={"page": 2, "limit": 2})
    body = res.json()
    assert body["total"] == 3
    assert body["page"] == 2
    assert body["per_page"] == 2
    assert body["pages"] == 2
    assert len(body["items"]) == 1


@pytest.mark.asyncio
async def test_patch_form_versions_changed_fields(admin_client, db):
    create_res = await admin_client.post("/forms", json=_form_payload())
    created = create_res.json()
    form_id = created["id"]
    email_field, size_field = created["fields"]

    patch_res = await admin_client.patch(
        f"/forms/{form_id}",
        json={
            "title": "Renamed",
            "settings": {"submission_limit": 5},
            "appearance": {"submit_button_text": "Send"},
            "fields": [
                {
                    "id": email_field["id"],
                    "name": "email",
                    "label": "Work email",
                    "type": "email",
                    "validation": {"required": True},
                },
                {
                    "id": size_field["id"],
                    "name": "size",
                    "label": "Size",
                    "type": "radio",
                    "options": [
                        {"label": "Small", "value": "s"},
                        {"label": "Large", "value": "l"},
                    ],
                },
            ],
        },
    )
    assert patch_res.status_code == 200
    data = patch_res.json()
    assert data["title"] == "Renamed"
    assert data["settings"]["submission_limit"] == 5
    assert data["settings"]["require_login"] is False
    assert data["appearance"]["theme"] == "dark"
    assert data["appearance"]["submit_button_text"] == "Send"

    email_v2, size_same = data["fields"]
    assert email_v2["field_key"] == email_field["field_key"]
    assert email_v2["version"] == 2
    assert email_v2["id"] != email_field["id"]
    assert size_same["id"] == size_field["id"]
    assert size_same["version"] == 1

    fields_res = await admin_client.get(
        f"/forms/{form_id}/fields", params={"include_inactive": "true"}
    )
    assert fields_res.status_code == 200
    assert len(fields_res.json()) == 3


@pytest.mark.asyncio
async def test_patch_unknown_form_is_404(admin_client):
    res = await admin_client.patch(
        "/forms/00000000-0000-0000-0000-000000000000", json={"title": "x"}
    )
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_delete_form_deactivates_it(admin_client, client, make_form, db):
    form = make_form(fields=[{"name": "name", "label": "Name", "type": "text"}])

    delete_res = await admin_client.delete(f"/forms/{form.id}")
    assert delete_res.status_code == 200
    assert delete_res.json() == {"message": "Form deleted successfully"}

    db.expire_all()
    row = db.get(Form, form.id)
    assert row is not None
    assert row.is_active is False

    fields_res = await admin_client.get(f"/forms/{form.id}/fields")
    assert fields_res.json() == []
    fields_res = await admin_client.get(
        f"/forms/{form.id}/fields", params={"include_inactive": "true"}
    )
    assert [f["is_active"] for f in fields_res.json()] == [False]

    res = await client.get(f"/forms/{form.id}")
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_field_listing_is_admin_only(user_client, make_form):
    form = make_form()
    res = await user_client.get(f"/forms/{form.id}/fields")
    assert res.status_code == 403
