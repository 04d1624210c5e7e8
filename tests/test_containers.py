from dataclasses import replace
from uuid import uuid4

from fastapi import status

from conftest import add_assignment, add_company, add_container, add_user, make_auth_headers
from marketplace.main import app
from marketplace.models import Container


def _container_payload(**overrides):
    payload = {
        "title": "Sales Bot",
        "description": "Qualifies inbound leads",
        "type": "app",
        "industry": "Retail",
        "department": "Sales",
        "visibility": "public",
        "tags": ["crm", " leads ", ""],
        "url": "https://apps.example.com/sales-bot",
    }
    payload.update(overrides)
    return payload


def _titles(response):
    return {item["title"] for item in response.json()}


def test_restricted_container_follows_company_and_capability(client, db):
    company = add_company(db)
    admin = add_user(db, company, role="admin")
    viewer = add_user(db, company)
    no_apps = add_user(db, company, apps=False)

    response = client.post(
        "/containers/",
        json=_container_payload(visibility="restricted"),
        headers=make_auth_headers(admin),
    )
    assert response.status_code == status.HTTP_201_CREATED
    created = response.json()
    assert created["title"] == "Sales Bot"
    assert created["tags"] == ["crm", "leads"]
    assert created["views"] == 0
    assert created["url_status"] == "unknown"
    assert created["created_by"] == str(admin.id)

    assert "Sales Bot" in _titles(client.get("/containers/", headers=make_auth_headers(viewer)))
    assert "Sales Bot" not in _titles(client.get("/containers/", headers=make_auth_headers(no_apps)))


def test_assignment_unlocks_private_container(client, db):
    owner_company = add_company(db, name="Owner")
    other_company = add_company(db, name="Other")
    owner = add_user(db, owner_company)
    outsider = add_user(db, other_company)
    platform_admin = add_user(db, role="admin")
    container = add_container(db, owner, title="Internal Tool", is_marketplace=False)

    response = client.get(f"/containers/{container.id}", headers=make_auth_headers(outsider))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    assign = client.post(
        f"/companies/{other_company.id}/containers",
        json={"container_id": str(container.id)},
        headers=make_auth_headers(platform_admin),
    )
    assert assign.status_code == status.HTTP_201_CREATED

    response = client.get(f"/containers/{container.id}", headers=make_auth_headers(outsider))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["title"] == "Internal Tool"


def test_type_change_is_rejected_and_container_unchanged(client, db):
    admin = add_user(db, role="admin")
    container = add_container(db, admin, title="Sales Bot", type="app")

    response = client.put(
        f"/containers/{container.id}",
        json={"type": "voice", "title": "Renamed"},
        headers=make_auth_headers(admin),
    )
    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "type"]

    db.expire_all()
    stored = db.get(Container, container.id)
    assert stored.type == "app"
    assert stored.title == "Sales Bot"


def test_update_with_same_type_is_allowed(client, db):
    admin = add_user(db, role="admin")
    container = add_container(db, admin, type="workflow")

    response = client.put(
        f"/containers/{container.id}",
        json={"type": "workflow", "description": "Nightly sync"},
        headers=make_auth_headers(admin),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["description"] == "Nightly sync"


def test_update_rejects_views_and_null_title(client, db):
    admin = add_user(db, role="admin")
    container = add_container(db, admin)
    headers = make_auth_headers(admin)

    views = client.put(f"/containers/{container.id}", json={"views": 999}, headers=headers)
    assert views.status_code == 422

    blank = client.put(f"/containers/{container.id}", json={"title": "   "}, headers=headers)
    assert blank.status_code == 422

    null = client.put(f"/containers/{container.id}", json={"title": None}, headers=headers)
    assert null.status_code == 422


def test_creator_can_update_but_others_cannot(client, db):
    company = add_company(db)
    creator = add_user(db, company)
    colleague = add_user(db, company)
    container = add_container(db, creator, is_marketplace=False)

    own = client.put(
        f"/containers/{container.id}",
        json={"title": "Mine"},
        headers=make_auth_headers(creator),
    )
    assert own.status_code == status.HTTP_200_OK
    assert own.json()["title"] == "Mine"

    other = client.put(
        f"/containers/{container.id}",
        json={"title": "Theirs"},
        headers=make_auth_headers(colleague),
    )
    assert other.status_code == status.HTTP_403_FORBIDDEN


def test_viewer_cannot_publish_to_marketplace(client, db):
    company = add_company(db)
    viewer = add_user(db, company)
    headers = make_auth_headers(viewer)

    create = client.post("/containers/", json=_container_payload(is_marketplace=True), headers=headers)
    assert create.status_code == status.HTTP_403_FORBIDDEN

    container = add_container(db, viewer, is_marketplace=False)
    flip = client.put(f"/containers/{container.id}", json={"is_marketplace": True}, headers=headers)
    assert flip.status_code == status.HTTP_403_FORBIDDEN


def test_creator_cannot_unpublish_marketplace_container_to_delete_it(client, db):
    viewer = add_user(db, add_company(db))
    container = add_container(db, viewer, is_marketplace=True)
    container_id = container.id
    headers = make_auth_headers(viewer)

    unpublish = client.put(f"/containers/{container_id}", json={"is_marketplace": False}, headers=headers)
    assert unpublish.status_code == status.HTTP_403_FORBIDDEN

    delete = client.delete(f"/containers/{container_id}", headers=headers)
    assert delete.status_code == status.HTTP_403_FORBIDDEN

    db.expire_all()
    assert db.get(Container, container_id).is_marketplace is True


def test_admin_can_unpublish_marketplace_container(client, db):
    admin = add_user(db, add_company(db), role="admin")
    container = add_container(db, admin, is_marketplace=True)

    response = client.put(
        f"/containers/{container.id}", json={"is_marketplace": False}, headers=make_auth_headers(admin)
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["is_marketplace"] is False


def test_create_requires_capability_for_type(client, db):
    viewer = add_user(db, add_company(db), voices=False)
    response = client.post(
        "/containers/",
        json=_container_payload(type="voice"),
        headers=make_auth_headers(viewer),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_create_rejects_unknown_type_and_blank_title(client, db):
    admin = add_user(db, role="admin")
    headers = make_auth_headers(admin)

    unknown = client.post("/containers/", json=_container_payload(type="spreadsheet"), headers=headers)
    assert unknown.status_code == 422

    blank = client.post("/containers/", json=_container_payload(title="  "), headers=headers)
    assert blank.status_code == 422


def test_bulk_import_is_all_or_nothing(client, db):
    viewer = add_user(db, add_company(db), workflows=False)
    headers = make_auth_headers(viewer)

    payload = {
        "containers": [
            _container_payload(title="One"),
            _container_payload(title="Two", type="workflow"),
        ]
    }
    response = client.post("/containers/bulk", json=payload, headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert db.query(Container).count() == 0

    payload["containers"][1]["type"] = "voice"
    response = client.post("/containers/bulk", json=payload, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    assert [item["title"] for item in response.json()] == ["One", "Two"]


def test_bulk_import_respects_limit(client, db):
    admin = add_user(db, role="admin")
    original = app.state.config
    app.state.config = replace(original, access=replace(original.access, max_bulk_import=2))
    try:
        payload = {"containers": [_container_payload(title=f"C{i}") for i in range(3)]}
        response = client.post("/containers/bulk", json=payload, headers=make_auth_headers(admin))
    finally:
        app.state.config = original

    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "containers"]


def test_list_filters_by_type_and_search(client, db):
    admin = add_user(db, role="admin")
    add_container(db, admin, title="Sales Bot", type="app", description="Leads")
    add_container(db, admin, title="Receptionist", type="voice", description="Answers calls")
    add_container(db, admin, title="Invoice Sync", type="workflow", description="Sales invoices")
    headers = make_auth_headers(admin)

    by_type = client.get("/containers/", params={"type": "voice"}, headers=headers)
    assert _titles(by_type) == {"Receptionist"}

    by_search = client.get("/containers/", params={"search": "sales"}, headers=headers)
    assert _titles(by_search) == {"Sales Bot", "Invoice Sync"}


def test_search_treats_wildcards_literally(client, db):
    admin = add_user(db, role="admin")
    add_container(db, admin, title="Sales Bot", description="Leads")
    add_container(db, admin, title="Discount 50% off", description="Promo")
    headers = make_auth_headers(admin)

    percent = client.get("/containers/", params={"search": "%"}, headers=headers)
    assert _titles(percent) == {"Discount 50% off"}

    underscore = client.get("/containers/", params={"search": "_"}, headers=headers)
    assert _titles(underscore) == set()


def test_admin_only_container_hidden_from_viewers(client, db):
    company = add_company(db)
    admin = add_user(db, company, role="admin")
    viewer = add_user(db, company)
    container = add_container(db, admin, title="Ops Console", visibility="admin_only")

    assert "Ops Console" in _titles(client.get("/containers/", headers=make_auth_headers(admin)))
    response = client.get(f"/containers/{container.id}", headers=make_auth_headers(viewer))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_conceal_forbidden_answers_not_found(client, db):
    owner = add_user(db, add_company(db, name="Owner"))
    outsider = add_user(db, add_company(db, name="Other"))
    container = add_container(db, owner, is_marketplace=False)

    original = app.state.config
    app.state.config = replace(original, access=replace(original.access, conceal_forbidden=True))
    try:
        read = client.get(f"/containers/{container.id}", headers=make_auth_headers(outsider))
        write = client.put(
            f"/containers/{container.id}",
            json={"title": "Hijacked"},
            headers=make_auth_headers(outsider),
        )
    finally:
        app.state.config = original

    assert read.status_code == status.HTTP_404_NOT_FOUND
    assert write.status_code == status.HTTP_404_NOT_FOUND


def test_missing_container_is_not_found(client, db):
    admin = add_user(db, role="admin")
    response = client.get(f"/containers/{uuid4()}", headers=make_auth_headers(admin))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_delete_container_removes_assignments(client, db):
    company = add_company(db)
    admin = add_user(db, role="admin")
    container = add_container(db, admin)
    container_id = container.id
    add_assignment(db, company, container)

    response = client.delete(f"/containers/{container_id}", headers=make_auth_headers(admin))
    assert response.status_code == status.HTTP_204_NO_CONTENT

    db.expire_all()
    assert db.get(Container, container_id) is None
    library = client.get("/companies/me/containers", headers=make_auth_headers(add_user(db, company)))
    assert library.json() == []


def test_viewer_cannot_delete_marketplace_container_they_created(client, db):
    viewer = add_user(db, add_company(db))
    container = add_container(db, viewer, is_marketplace=True)
    response = client.delete(f"/containers/{container.id}", headers=make_auth_headers(viewer))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_record_view_increments_for_viewers(client, db):
    admin = add_user(db, role="admin")
    viewer = add_user(db, add_company(db))
    container = add_container(db, admin)
    headers = make_auth_headers(viewer)

    first = client.post(f"/containers/{container.id}/view", headers=headers)
    second = client.post(f"/containers/{container.id}/view", headers=headers)

    assert first.status_code == status.HTTP_200_OK
    assert first.json() == {"container_id": str(container.id), "views": 1}
    assert second.json()["views"] == 2


def test_record_view_requires_view_access(client, db):
    admin = add_user(db, role="admin")
    blocked = add_user(db, add_company(db), apps=False)
    container = add_container(db, admin, type="app")

    response = client.post(f"/containers/{container.id}/view", headers=make_auth_headers(blocked))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    db.expire_all()
    assert db.get(Container, container.id).views == 0


def test_requests_without_token_are_unauthorized(client):
    response = client.get("/containers/")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_token_with_stale_company_is_rejected(client, db):
    company = add_company(db)
    user = add_user(db, company)
    headers = make_auth_headers(user)

    user.company_id = None
    db.commit()

    response = client.get("/containers/", headers=headers)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
