from __future__ import annotations


def _employee(client, headers, project_id, name="Ravi Kumar", phone="9000011111", salary=800):
    return client.post(
        "/api/employees",
        headers=headers,
        json={
            "name": name,
            "phone": phone,
            "address": "  Plot 4, MG Road  ",
            "salary_per_day": salary,
            "joining_date": "2026-01-05",
            "assigned_projects": [project_id],
        },
    )


def _attendance(client, headers, employee_id, day, status="Present"):
    return client.post(
        "/api/attendance",
        headers=headers,
        json={
            "employee_id": employee_id,
            "status": status,
            "in_time": "09:00",
            "out_time": "18:00",
            "work": "shuttering",
            "date": day,
        },
    )


def test_projects_are_paginated_and_scoped_to_their_creator(client, auth_headers):
    for name in ("Alpha Villas", "Beta Mall", "Gamma Bridge"):
        created = client.post("/api/projects", headers=auth_headers["admin"], json={"name": name})
        assert created.status_code == 201

    page = client.get("/api/projects", headers=auth_headers["admin"], params={"limit": 2, "sort_by": "name", "sort_order": "asc"})
    assert page.status_code == 200
    payload = page.json()
    assert [p["name"] for p in payload["projects"]] == ["Alpha Villas", "Beta Mall"]
    assert payload["pagination"] == {
        "current_page": 1,
        "total_pages": 2,
        "total": 3,
        "has_next": True,
        "has_prev": False,
    }

    searched = client.get("/api/projects", headers=auth_headers["admin"], params={"search": "bridge"}).json()
    assert [p["name"] for p in searched["projects"]] == ["Gamma Bridge"]

    assert client.get("/api/projects", headers=auth_headers["user"]).json()["pagination"]["total"] == 0

    duplicate = client.post("/api/projects", headers=auth_headers["admin"], json={"name": "Beta Mall"})
    assert duplicate.status_code == 409


def test_project_status_and_access_rules(client, auth_headers, project_id):
    assert client.get(f"/api/projects/{project_id}", headers=auth_headers["user"]).status_code == 403

    same = client.patch(f"/api/projects/{project_id}/status", headers=auth_headers["admin"], json={"status": "active"})
    assert same.status_code == 400

    changed = client.patch(
        f"/api/projects/{project_id}/status",
        headers=auth_headers["admin"],
        json={"status": "on-hold"},
    )
    assert changed.status_code == 200
    assert changed.json()["data"]["status"] == "on-hold"

    updated = client.put(
        f"/api/projects/{project_id}",
        headers=auth_headers["admin"],
        json={"description": "Phase two"},
    )
    assert updated.json()["data"]["description"] == "Phase two"
    assert updated.json()["data"]["name"] == "Riverside Tower"


def test_project_with_materials_cannot_be_deleted(client, auth_headers, project_id):
    client.post(
        "/api/materials/add",
        headers=auth_headers["admin"],
        json={
            "material_code": "CEM1",
            "name": "cement",
            "quantity": 1,
            "added_by": "store",
            "project_id": project_id,
        },
    )

    assert client.delete(f"/api/projects/{project_id}", headers=auth_headers["admin"]).status_code == 409


def test_deleted_project_is_hidden_and_closed_to_new_work(client, auth_headers, project_id):
    deleted = client.delete(f"/api/projects/{project_id}", headers=auth_headers["admin"])
    assert deleted.status_code == 200

    assert client.get(f"/api/projects/{project_id}", headers=auth_headers["admin"]).status_code == 404
    assert client.get("/api/projects", headers=auth_headers["admin"]).json()["pagination"]["total"] == 0
    assert client.delete(f"/api/projects/{project_id}", headers=auth_headers["admin"]).status_code == 404

    batch = client.post(
        "/api/materials/add",
        headers=auth_headers["admin"],
        json={"material_code": "CEM1", "name": "cement", "quantity": 1, "added_by": "store", "project_id": project_id},
    )
    assert batch.status_code == 404
    assert _employee(client, auth_headers["admin"], project_id).status_code == 400


def test_project_keeps_its_material_history_after_delete(client, auth_headers, project_id):
    batch = client.post(
        "/api/materials/add",
        headers=auth_headers["admin"],
        json={
            "material_code": "CEM1",
            "name": "cement",
            "quantity": 4,
            "added_by": "store",
            "date": "2026-04-02T08:00:00Z",
            "project_id": project_id,
        },
    ).json()
    client.post(
        "/api/materials/take",
        headers=auth_headers["user"],
        json={"material_code": "CEM1", "quantity": 4, "taken_by": "crew", "date": "2026-04-03T08:00:00Z"},
    )
    assert client.delete(f"/api/materials/{batch['id']}", headers=auth_headers["admin"]).status_code == 200

    assert client.delete(f"/api/projects/{project_id}", headers=auth_headers["admin"]).status_code == 200

    report = client.get(
        f"/api/dpr/material-report/{project_id}",
        headers=auth_headers["admin"],
        params={"month": 4, "year": 2026},
    )
    assert report.status_code == 200
    assert report.json()["materials"][0]["monthly_consumed"] == 4


def test_employees_are_unique_and_linked_to_projects(client, auth_headers, project_id):
    created = _employee(client, auth_headers["admin"], project_id)
    assert created.status_code == 201
    employee = created.json()
    assert employee["address"] == "plot 4, mg road"
    assert employee["assigned_projects"] == [{"id": project_id, "name": "Riverside Tower"}]

    clash = _employee(client, auth_headers["admin"], project_id, name="ravi kumar", phone="9000022222")
    assert clash.status_code == 409

    unknown_project = _employee(client, auth_headers["admin"], "missing", name="Sita", phone="9000033333")
    assert unknown_project.status_code == 400

    assert client.get("/api/employees", headers=auth_headers["user"]).status_code == 403
    on_project = client.get(f"/api/employees/project/{project_id}", headers=auth_headers["admin"]).json()
    assert [e["id"] for e in on_project] == [employee["id"]]

    renamed = client.put(
        f"/api/employees/{employee['id']}",
        headers=auth_headers["admin"],
        json={"salary_per_day": 900},
    )
    assert renamed.json()["salary_per_day"] == 900

    assert client.delete(f"/api/employees/{employee['id']}", headers=auth_headers["admin"]).status_code == 200
    assert client.get(f"/api/employees/{employee['id']}", headers=auth_headers["admin"]).status_code == 404


def test_attendance_once_per_day_and_monthly_salary(client, auth_headers, project_id):
    employee_id = _employee(client, auth_headers["admin"], project_id, salary=800).json()["id"]

    assert _attendance(client, auth_headers["user"], employee_id, "2026-02-02").status_code == 201
    assert _attendance(client, auth_headers["user"], employee_id, "2026-02-03", "Half Day").status_code == 201
    assert _attendance(client, auth_headers["user"], employee_id, "2026-02-04", "Absent").status_code == 201
    assert _attendance(client, auth_headers["user"], employee_id, "2026-03-01").status_code == 201

    duplicate = _attendance(client, auth_headers["user"], employee_id, "2026-02-02", "Absent")
    assert duplicate.status_code == 409
    assert _attendance(client, auth_headers["user"], employee_id, "2026-02-05", "Late").status_code == 400

    report = client.get(
        f"/api/dpr/attendance-report/{project_id}",
        headers=auth_headers["user"],
        params={"month": 2, "year": 2026},
    )
    assert report.status_code == 200
    (summary,) = report.json()["employees"]
    assert (summary["present"], summary["half"], summary["absent"]) == (1, 1, 1)
    assert summary["total_salary"] == 1200
    assert [day["date"] for day in summary["attendance"]] == ["2026-02-02", "2026-02-03", "2026-02-04"]

    grouped = client.get("/api/attendance/grouped", headers=auth_headers["user"]).json()
    assert len(grouped) == 1
    assert len(grouped[0]["records"]) == 4
