"""Integration tests for /api/companies/*."""
from sitebuilder.models.company import Company
from sitebuilder.models.site import Site

from conftest import login_as, seed_user


def _add_company(db, user, name, **kwargs):
    company = Company(name=name, user_id=user.id, status=True, **kwargs)
    db.add(company)
    db.commit()
    return company


def _add_site(db, user, company, domain):
    db.add(Site(domain=domain, site_name=domain, user_id=user.id, company_id=company.id))
    db.commit()


async def test_list_requires_login(client):
    resp = await client.get("/api/companies/get")
    assert resp.status_code == 401


async def test_list_orders_by_site_count_and_paginates(client, db):
    user, acme = seed_user(db)
    busy = _add_company(db, user, "Busy Co")
    _add_site(db, user, busy, "one.com")
    _add_site(db, user, busy, "two.com")
    _add_site(db, user, acme, "three.com")
    _add_company(db, user, "Empty Co")
    login_as(client, user)

    resp = await client.get("/api/companies/get", params={"page": 1, "limit": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [c["name"] for c in body["data"]] == ["Busy Co", "Acme"]
    assert [c["site_count"] for c in body["data"]] == [2, 1]
    assert body["pagination"] == {
        "page": 1,
        "limit": 2,
        "totalCount": 3,
        "totalPages": 2,
        "hasNextPage": True,
        "hasPrevPage": False,
    }

    resp = await client.get("/api/companies/get", params={"page": 2, "limit": 2})
    assert [c["name"] for c in resp.json()["data"]] == ["Empty Co"]


async def test_list_search_and_status_filter(client, db):
    user, _ = seed_user(db)
    _add_company(db, user, "Zeta Labs", email="hello@zeta.io")
    disabled = _add_company(db, user, "Old Corp")
    disabled.status = False
    db.commit()
    login_as(client, user)

    resp = await client.get("/api/companies/get", params={"search": "zeta"})
    assert [c["name"] for c in resp.json()["data"]] == ["Zeta Labs"]

    resp = await client.get("/api/companies/get", params={"status": "false"})
    assert [c["name"] for c in resp.json()["data"]] == ["Old Corp"]


async def test_delete_company_with_sites_is_refused(client, db):
    user, company = seed_user(db)
    _add_site(db, user, company, "one.com")
    login_as(client, user)

    resp = await client.delete("/api/companies/delete", params={"id": str(company.id)})
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Cannot delete company with 1 site(s) registered. Please delete all sites first."
    }


async def test_delete_company(client, db):
    user, company = seed_user(db)
    company_id = company.id
    login_as(client, user)

    resp = await client.delete("/api/companies/delete", params={"id": str(company_id)})
    assert resp.status_code == 200
    db.expire_all()
    assert db.query(Company).filter(Company.id == company_id).first() is None


async def test_delete_company_permissions(client, db):
    owner, company = seed_user(db)
    other, _ = seed_user(db, email="other@test.com", username="other", company_name=None)
    admin, _ = seed_user(db, email="admin@test.com", username="admin", role="admin", company_name=None)

    login_as(client, other)
    resp = await client.delete("/api/companies/delete", params={"id": str(company.id)})
    assert resp.status_code == 403
    assert resp.json() == {"error": "You do not have permission to delete this company"}

    login_as(client, admin)
    resp = await client.delete("/api/companies/delete", params={"id": str(company.id)})
    assert resp.status_code == 200


async def test_delete_unknown_company(client, db):
    user, _ = seed_user(db)
    login_as(client, user)
    resp = await client.delete("/api/companies/delete", params={"id": "00000000-0000-0000-0000-000000000000"})
    assert resp.status_code == 404


async def test_toggle_status(client, db):
    user, company = seed_user(db)
    login_as(client, user)

    resp = await client.put("/api/companies/toggle-status", json={"id": str(company.id), "status": False})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Company disabled successfully"
    assert resp.json()["data"]["status"] is False


async def test_toggle_status_requires_bool(client, db):
    user, company = seed_user(db)
    login_as(client, user)

    resp = await client.put("/api/companies/toggle-status", json={"id": str(company.id), "status": "yes"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Status must be a boolean value"}


async def test_toggle_status_with_sites_is_refused(client, db):
    user, company = seed_user(db)
    _add_site(db, user, company, "one.com")
    login_as(client, user)

    resp = await client.put("/api/companies/toggle-status", json={"id": str(company.id), "status": False})
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Cannot disable company with 1 site(s) registered.")


async def test_update_company(client, db):
    user, company = seed_user(db)
    _add_company(db, user, "Taken Name")
    login_as(client, user)
    payload = {
        "id": str(company.id),
        "name": "Acme Renamed",
        "phone": "+100",
        "email": "acme@example.com",
        "address": "2 Side St",
    }

    resp = await client.put("/api/companies/update", json=payload)
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Acme Renamed"

    resp = await client.put("/api/companies/update", json={**payload, "name": "Taken Name"})
    assert resp.status_code == 400

    resp = await client.put("/api/companies/update", json={**payload, "address": ""})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Name, phone, email, and address are required"}
