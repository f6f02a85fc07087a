"""
Test Suite: HTTP API

Exercises the FastAPI routers end to end against an in-memory SQLite database:
1. Authentication and project ownership
2. Measurement entry and CSV/JSON import
3. Analysis view
4. Report generation, retrieval, export and verification
5. Project status changes
6. Admin console: reports, users, projects and the audit log
"""
import json
import pytest
import sys
import os
from uuid import uuid4

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lca_engine.auth import create_access_token
from lca_engine.database import Base, get_db
from lca_engine.main import app
from lca_engine.models.db_models import MeasurementDB, ReportDB, UserDB, UserRole
from lca_engine.services.lca import FingerprintUnavailableError, SqlAlchemyLcaRepository, verify_fingerprint
from lca_engine.services.lca import assembler as assembler_module


EXAMPLE_MEASUREMENTS = [
    {"process_stage": "extraction", "energy_consumption": 100, "emissions_co2": 50, "water_usage": 200,
     "waste_generated": 10, "recycled_content": 20, "recyclability": 40},
    {"process_stage": "processing", "energy_consumption": 300, "emissions_co2": 1200, "water_usage": 6000,
     "waste_generated": 50, "recycled_content": 10, "recyclability": 30},
]


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(session_factory, email, role=UserRole.ENGINEER.value, organization=None):
    db = session_factory()
    try:
        user = UserDB(id=str(uuid4()), email=email, full_name=email.split("@")[0], role=role,
                      organization=organization)
        db.add(user)
        db.commit()
        return {"Authorization": f"Bearer {create_access_token(user.id, user.email, user.role)}"}
    finally:
        db.close()


@pytest.fixture
def auth_headers(session_factory):
    return _make_user(session_factory, "analyst@example.com")


@pytest.fixture
def other_headers(session_factory):
    return _make_user(session_factory, "other@example.com")


@pytest.fixture
def admin_headers(session_factory):
    return _make_user(session_factory, "admin@example.com", role=UserRole.ADMIN.value)


@pytest.fixture
def project_id(client, auth_headers):
    response = client.post("/projects", json={"name": "Aluminium Extrusion", "metal_type": "aluminium"},
                           headers=auth_headers)
    assert response.status_code == 201
    return response.json()["project_id"]


@pytest.fixture
def populated_project(client, auth_headers, project_id):
    response = client.post(f"/projects/{project_id}/measurements", json=EXAMPLE_MEASUREMENTS,
                           headers=auth_headers)
    assert response.status_code == 201
    return project_id


def _generate(client, headers, project_id, **body):
    body.setdefault("title", "Q1 Assessment")
    body.setdefault("report_type", "summary")
    return client.post(f"/projects/{project_id}/reports", json=body, headers=headers)


class TestServiceInfo:

    def test_root(self, client):
        assert client.get("/").json()["name"] == "LCA Report Engine"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"


class TestAuthentication:

    def test_missing_token(self, client):
        assert client.get("/projects").status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.get("/projects", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_token_for_unknown_user(self, client):
        token = create_access_token("ghost", "ghost@example.com")
        response = client.get("/projects", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestProjects:

    def test_create_and_list(self, client, auth_headers, project_id):
        projects = client.get("/projects", headers=auth_headers).json()
        assert [p["project_id"] for p in projects] == [project_id]
        assert projects[0]["status"] == "active"

    def test_blank_name_rejected(self, client, auth_headers):
        response = client.post("/projects", json={"name": " ", "metal_type": "steel"}, headers=auth_headers)
        assert response.status_code == 422

    def test_detail_counts(self, client, auth_headers, populated_project):
        detail = client.get(f"/projects/{populated_project}", headers=auth_headers).json()
        assert detail["measurement_count"] == 2
        assert detail["report_count"] == 0

    def test_other_users_project_hidden(self, client, other_headers, project_id):
        assert client.get(f"/projects/{project_id}", headers=other_headers).status_code == 404

    def test_admin_can_open_any_project(self, client, admin_headers, project_id):
        assert client.get(f"/projects/{project_id}", headers=admin_headers).status_code == 200


class TestMeasurements:

    def test_listed_in_entry_order(self, client, auth_headers, populated_project):
        rows = client.get(f"/projects/{populated_project}/measurements", headers=auth_headers).json()
        assert [r["process_stage"] for r in rows] == ["extraction", "processing"]

    def test_out_of_range_rejected(self, client, auth_headers, project_id):
        response = client.post(f"/projects/{project_id}/measurements",
                               json=[{"process_stage": "use", "recyclability": 120}], headers=auth_headers)
        assert response.status_code == 422

    def test_infinite_value_rejected(self, client, auth_headers, project_id):
        response = client.post(f"/projects/{project_id}/measurements",
                               content='[{"process_stage": "use", "emissions_co2": Infinity}]',
                               headers={**auth_headers, "Content-Type": "application/json"})
        assert response.status_code == 422
        assert _generate(client, auth_headers, project_id).status_code == 201

    def test_oversized_value_rejected(self, client, auth_headers, project_id):
        response = client.post(f"/projects/{project_id}/measurements",
                               json=[{"process_stage": "use", "water_usage": 1e308}], headers=auth_headers)
        assert response.status_code == 422

    def test_offset_timestamp_stored_as_utc(self, client, auth_headers, project_id):
        client.post(f"/projects/{project_id}/measurements",
                    json=[{"process_stage": "use", "created_at": "2025-01-01T05:00:00+05:00"}],
                    headers=auth_headers)
        rows = client.get(f"/projects/{project_id}/measurements", headers=auth_headers).json()
        assert rows[0]["created_at"].startswith("2025-01-01T00:00:00")

    def test_timestamp_outside_utc_range_rejected(self, client, auth_headers, project_id):
        response = client.post(f"/projects/{project_id}/measurements",
                               json=[{"process_stage": "use", "created_at": "0001-01-01T00:00:00+05:00"}],
                               headers=auth_headers)
        assert response.status_code == 422
        assert client.get(f"/projects/{project_id}/measurements", headers=auth_headers).json() == []

    def test_concurrent_batch_conflicts(self, client, auth_headers, populated_project, monkeypatch):
        # A second writer that read the maximum before the first batch committed
        monkeypatch.setattr(SqlAlchemyLcaRepository, "last_seq", lambda self, project_id: 0)
        response = client.post(f"/projects/{populated_project}/measurements",
                               json=[{"process_stage": "use", "emissions_co2": 1}], headers=auth_headers)
        assert response.status_code == 409
        rows = client.get(f"/projects/{populated_project}/measurements", headers=auth_headers).json()
        assert [r["process_stage"] for r in rows] == ["extraction", "processing"]

    def test_sequence_unique_per_project(self, session_factory, populated_project):
        db = session_factory()
        try:
            db.add(MeasurementDB(id=str(uuid4()), project_id=populated_project, seq=1, process_stage="use"))
            with pytest.raises(IntegrityError):
                db.commit()
            db.rollback()
        finally:
            db.close()

    def test_csv_import(self, client, auth_headers, project_id):
        content = "process_stage,emissions_co2,recycled_content\nuse,5,10\nuse,5,200\n,3,0\n"
        response = client.post(f"/projects/{project_id}/measurements/import",
                               json={"format": "csv", "content": content}, headers=auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["accepted"] == 2
        assert [r["row_number"] for r in body["rejected"]] == [2]

    def test_json_import(self, client, auth_headers, project_id):
        response = client.post(f"/projects/{project_id}/measurements/import",
                               json={"format": "json", "content": json.dumps(EXAMPLE_MEASUREMENTS)},
                               headers=auth_headers)
        assert response.json()["accepted"] == 2

    def test_unreadable_import(self, client, auth_headers, project_id):
        response = client.post(f"/projects/{project_id}/measurements/import",
                               json={"format": "xml", "content": "<a/>"}, headers=auth_headers)
        assert response.status_code == 400


class TestProjectStatus:

    def _set_status(self, client, headers, project_id, value):
        return client.patch(f"/projects/{project_id}/status", json={"status": value}, headers=headers)

    def test_owner_completes_project(self, client, auth_headers, project_id):
        response = self._set_status(client, auth_headers, project_id, "completed")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert client.get(f"/projects/{project_id}", headers=auth_headers).json()["status"] == "completed"

    @pytest.mark.parametrize("value", ["draft", "active", "archived"])
    def test_all_statuses_accepted(self, client, auth_headers, project_id, value):
        assert self._set_status(client, auth_headers, project_id, value).json()["status"] == value

    def test_unknown_status_rejected(self, client, auth_headers, project_id):
        assert self._set_status(client, auth_headers, project_id, "paused").status_code == 422

    def test_other_user_cannot_change(self, client, other_headers, project_id):
        assert self._set_status(client, other_headers, project_id, "archived").status_code == 404

    def test_admin_can_change(self, client, admin_headers, project_id):
        assert self._set_status(client, admin_headers, project_id, "archived").status_code == 200


class TestAnalysis:

    def test_dashboard(self, client, auth_headers, populated_project):
        view = client.get(f"/projects/{populated_project}/analysis", headers=auth_headers).json()
        assert view["summary"]["total_emissions"] == 1250
        assert [row["label"] for row in view["stages"]] == ["EXTRACTION", "PROCESSING"]

    def test_stage_filter(self, client, auth_headers, populated_project):
        view = client.get(f"/projects/{populated_project}/analysis", params={"stage": "processing"},
                          headers=auth_headers).json()
        assert [row["stage"] for row in view["stages"]] == ["processing"]

    def test_unknown_time_range(self, client, auth_headers, populated_project):
        response = client.get(f"/projects/{populated_project}/analysis", params={"time_range": "1y"},
                              headers=auth_headers)
        assert response.status_code == 400


class TestReportGeneration:

    def test_generate(self, client, auth_headers, populated_project):
        response = _generate(client, auth_headers, populated_project)
        assert response.status_code == 201
        report = response.json()
        content = report["content"]
        assert content["metadata"]["generated_by"] == "analyst@example.com"
        assert content["metadata"]["data_points"] == 2
        assert content["executive_summary"]["total_emissions"] == 1250
        assert report["fingerprint"] == content["metadata"]["fingerprint"]
        assert verify_fingerprint(content)

    def test_empty_title_rejected(self, client, auth_headers, populated_project):
        response = _generate(client, auth_headers, populated_project, title="  ")
        assert response.status_code == 400
        assert response.json()["detail"] == "Please fill in all required fields"

    def test_empty_report_type_rejected(self, client, auth_headers, populated_project):
        assert _generate(client, auth_headers, populated_project, report_type="").status_code == 400

    def test_unknown_project(self, client, auth_headers):
        assert _generate(client, auth_headers, "missing").status_code == 404

    def test_empty_project(self, client, auth_headers, project_id):
        content = _generate(client, auth_headers, project_id).json()["content"]
        assert content["metadata"]["data_points"] == 0
        assert content["detailed_analysis"]["recommendations"] == []
        assert len(content["detailed_analysis"]["compliance_status"]) == 3

    def test_fingerprint_unavailable(self, client, auth_headers, populated_project, monkeypatch):
        def unavailable(payload):
            raise FingerprintUnavailableError("sha256 disabled")

        monkeypatch.setattr(assembler_module, "compute_fingerprint", unavailable)
        response = _generate(client, auth_headers, populated_project)
        assert response.status_code == 503
        reports = client.get(f"/projects/{populated_project}/reports", headers=auth_headers).json()
        assert reports == []


class TestStoredReports:

    @pytest.fixture
    def report_id(self, client, auth_headers, populated_project):
        return _generate(client, auth_headers, populated_project, title="Annual LCA Review").json()["report_id"]

    def test_list(self, client, auth_headers, populated_project, report_id):
        reports = client.get(f"/projects/{populated_project}/reports", headers=auth_headers).json()
        assert len(reports) == 1
        assert reports[0]["report_id"] == report_id
        assert reports[0]["sustainability_score"] == 25

    def test_get_unchanged(self, client, auth_headers, report_id):
        first = client.get(f"/reports/{report_id}", headers=auth_headers).json()
        second = client.get(f"/reports/{report_id}", headers=auth_headers).json()
        assert first == second

    def test_hidden_from_other_users(self, client, other_headers, report_id):
        assert client.get(f"/reports/{report_id}", headers=other_headers).status_code == 404

    def test_export_json(self, client, auth_headers, report_id):
        response = client.get(f"/reports/{report_id}/export", params={"format": "json"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert f'filename="Annual_LCA_Review_{report_id[:8]}.json"' in response.headers["content-disposition"]
        assert verify_fingerprint(response.json())

    def test_export_text(self, client, auth_headers, report_id):
        response = client.get(f"/reports/{report_id}/export", params={"format": "text"}, headers=auth_headers)
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.startswith("LCA ASSESSMENT REPORT\nAnnual LCA Review\n")
        assert '.txt"' in response.headers["content-disposition"]

    def test_export_non_ascii_title(self, client, auth_headers, populated_project):
        report_id = _generate(client, auth_headers, populated_project, title="CO₂ footprint Q1").json()["report_id"]
        response = client.get(f"/reports/{report_id}/export", params={"format": "text"}, headers=auth_headers)
        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert f'filename="CO_footprint_Q1_{report_id[:8]}.txt"' in disposition
        assert "filename*=UTF-8''CO%E2%82%82_footprint_Q1_" in disposition
        assert "CO₂ footprint Q1" in response.text

    def test_export_unknown_format(self, client, auth_headers, report_id):
        response = client.get(f"/reports/{report_id}/export", params={"format": "pdf"}, headers=auth_headers)
        assert response.status_code == 400

    def test_verify(self, client, auth_headers, report_id):
        body = client.get(f"/reports/{report_id}/verify", headers=auth_headers).json()
        assert body["verified"] is True

    def test_tampered_report_fails_verification(self, client, auth_headers, session_factory, report_id):
        db = session_factory()
        try:
            row = db.query(ReportDB).filter(ReportDB.id == report_id).first()
            content = json.loads(json.dumps(row.content))
            content["executive_summary"]["total_emissions"] = 0
            row.content = content
            db.commit()
        finally:
            db.close()

        body = client.get(f"/reports/{report_id}/verify", headers=auth_headers).json()
        assert body["verified"] is False


class TestAdminConsole:

    @pytest.fixture
    def reports(self, client, auth_headers, populated_project):
        _generate(client, auth_headers, populated_project, title="Baseline", report_type="summary")
        _generate(client, auth_headers, populated_project, title="Deep Dive", report_type="detailed")

    def test_requires_admin(self, client, auth_headers):
        assert client.get("/admin/reports", headers=auth_headers).status_code == 403

    def test_list_all(self, client, admin_headers, reports):
        items = client.get("/admin/reports", headers=admin_headers).json()
        assert {i["title"] for i in items} == {"Baseline", "Deep Dive"}
        assert all(i["creator_email"] == "analyst@example.com" for i in items)

    def test_search_title(self, client, admin_headers, reports):
        items = client.get("/admin/reports", params={"search": "deep"}, headers=admin_headers).json()
        assert [i["title"] for i in items] == ["Deep Dive"]

    def test_search_project_name(self, client, admin_headers, reports):
        items = client.get("/admin/reports", params={"search": "ALUMINIUM"}, headers=admin_headers).json()
        assert len(items) == 2

    def test_type_filter(self, client, admin_headers, reports):
        items = client.get("/admin/reports", params={"report_type": "summary"}, headers=admin_headers).json()
        assert [i["title"] for i in items] == ["Baseline"]

    def test_stats(self, client, admin_headers, reports):
        stats = client.get("/admin/reports/stats", headers=admin_headers).json()
        assert stats["total_reports"] == 2
        assert stats["by_type"] == {"summary": 1, "detailed": 1, "comparative": 0}
        assert stats["verified"] == 2
        assert stats["unverified"] == 0
        assert stats["top_creators"] == [
            {"email": "analyst@example.com", "full_name": "analyst", "report_count": 2}
        ]


class TestAdminUsers:

    def _user_id(self, client, admin_headers, email):
        users = client.get("/admin/users", params={"search": email}, headers=admin_headers).json()
        return users[0]["id"]

    def test_requires_admin(self, client, auth_headers):
        assert client.get("/admin/users", headers=auth_headers).status_code == 403

    def test_list_with_counts(self, client, admin_headers, auth_headers, populated_project):
        _generate(client, auth_headers, populated_project)
        users = {u["email"]: u for u in client.get("/admin/users", headers=admin_headers).json()}
        assert set(users) == {"analyst@example.com", "admin@example.com"}
        assert users["analyst@example.com"]["project_count"] == 1
        assert users["analyst@example.com"]["report_count"] == 1
        assert users["admin@example.com"]["role"] == "admin"

    def test_search_and_role_filter(self, client, admin_headers, auth_headers, other_headers):
        items = client.get("/admin/users", params={"search": "OTHER"}, headers=admin_headers).json()
        assert [u["email"] for u in items] == ["other@example.com"]
        admins = client.get("/admin/users", params={"role": "admin"}, headers=admin_headers).json()
        assert [u["email"] for u in admins] == ["admin@example.com"]

    def test_promote_user(self, client, admin_headers, auth_headers, project_id):
        user_id = self._user_id(client, admin_headers, "analyst@example.com")
        response = client.patch(f"/admin/users/{user_id}/role", json={"role": "admin"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["role"] == "admin"
        # The promoted user now reaches the admin console
        assert client.get("/admin/users", headers=auth_headers).status_code == 200

    def test_domain_role_keeps_standard_access(self, client, admin_headers, auth_headers):
        user_id = self._user_id(client, admin_headers, "analyst@example.com")
        response = client.patch(f"/admin/users/{user_id}/role", json={"role": "auditor"}, headers=admin_headers)
        assert response.json()["role"] == "auditor"
        assert client.get("/admin/users", headers=auth_headers).status_code == 403
        assert client.get("/projects", headers=auth_headers).status_code == 200

    def test_search_organization(self, client, session_factory, admin_headers, auth_headers):
        _make_user(session_factory, "smelter@example.com", role=UserRole.METALLURGIST.value,
                   organization="Nordic Metals")
        items = client.get("/admin/users", params={"search": "nordic"}, headers=admin_headers).json()
        assert [u["email"] for u in items] == ["smelter@example.com"]
        assert items[0]["organization"] == "Nordic Metals"

    def test_stats(self, client, session_factory, admin_headers, auth_headers):
        _make_user(session_factory, "smelter@example.com", role=UserRole.METALLURGIST.value,
                   organization="Nordic Metals")
        _make_user(session_factory, "policy@example.com", role=UserRole.POLICYMAKER.value,
                   organization="Nordic Metals")
        _make_user(session_factory, "lab@example.com", role=UserRole.AUDITOR.value, organization="Alloy Lab")
        stats = client.get("/admin/users/stats", headers=admin_headers).json()
        assert stats["total_users"] == 5
        assert stats["by_role"] == {"admin": 1, "auditor": 1, "metallurgist": 1, "engineer": 1, "policymaker": 1}
        assert stats["by_organization"] == {"Nordic Metals": 2, "Alloy Lab": 1}
        assert len(stats["recent_registrations"]) == 5

    def test_stats_requires_admin(self, client, auth_headers):
        assert client.get("/admin/users/stats", headers=auth_headers).status_code == 403

    def test_unknown_role_rejected(self, client, admin_headers, auth_headers):
        user_id = self._user_id(client, admin_headers, "analyst@example.com")
        response = client.patch(f"/admin/users/{user_id}/role", json={"role": "owner"}, headers=admin_headers)
        assert response.status_code == 422

    def test_unknown_user(self, client, admin_headers):
        response = client.patch("/admin/users/missing/role", json={"role": "engineer"}, headers=admin_headers)
        assert response.status_code == 404

    def test_cannot_demote_self(self, client, admin_headers):
        user_id = self._user_id(client, admin_headers, "admin@example.com")
        response = client.patch(f"/admin/users/{user_id}/role", json={"role": "engineer"}, headers=admin_headers)
        assert response.status_code == 400


class TestAdminProjects:

    @pytest.fixture
    def projects(self, client, auth_headers, other_headers, populated_project):
        response = client.post("/projects", json={"name": "Copper Cable", "metal_type": "copper",
                                                  "description": "Drawn wire"}, headers=other_headers)
        return populated_project, response.json()["project_id"]

    def test_requires_admin(self, client, auth_headers):
        assert client.get("/admin/projects", headers=auth_headers).status_code == 403

    def test_list_all_with_creators(self, client, admin_headers, projects):
        items = {p["name"]: p for p in client.get("/admin/projects", headers=admin_headers).json()}
        assert set(items) == {"Aluminium Extrusion", "Copper Cable"}
        assert items["Aluminium Extrusion"]["creator_email"] == "analyst@example.com"
        assert items["Aluminium Extrusion"]["measurement_count"] == 2
        assert items["Copper Cable"]["creator_name"] == "other"
        assert items["Copper Cable"]["measurement_count"] == 0

    def test_search(self, client, admin_headers, projects):
        items = client.get("/admin/projects", params={"search": "wire"}, headers=admin_headers).json()
        assert [p["name"] for p in items] == ["Copper Cable"]

    def test_metal_type_filter(self, client, admin_headers, projects):
        items = client.get("/admin/projects", params={"metal_type": "aluminium"}, headers=admin_headers).json()
        assert [p["name"] for p in items] == ["Aluminium Extrusion"]

    def test_status_filter(self, client, admin_headers, projects):
        active = client.get("/admin/projects", params={"status": "active"}, headers=admin_headers).json()
        assert len(active) == 2
        completed = client.get("/admin/projects", params={"status": "completed"}, headers=admin_headers).json()
        assert completed == []

    def test_status_filter_after_change(self, client, auth_headers, admin_headers, projects):
        aluminium_id, _ = projects
        client.patch(f"/projects/{aluminium_id}/status", json={"status": "completed"}, headers=auth_headers)
        completed = client.get("/admin/projects", params={"status": "completed"}, headers=admin_headers).json()
        assert [p["name"] for p in completed] == ["Aluminium Extrusion"]

    def test_stats(self, client, auth_headers, admin_headers, projects):
        aluminium_id, _ = projects
        client.patch(f"/projects/{aluminium_id}/status", json={"status": "completed"}, headers=auth_headers)
        client.post("/projects", json={"name": "Titanium Frame", "metal_type": "titanium"}, headers=auth_headers)

        stats = client.get("/admin/projects/stats", headers=admin_headers).json()
        assert stats["total_projects"] == 3
        assert stats["by_status"] == {"draft": 0, "active": 2, "completed": 1, "archived": 0}
        assert stats["by_metal_type"] == {"aluminium": 1, "copper": 1, "steel": 0, "zinc": 0, "other": 0,
                                          "titanium": 1}
        assert {p["name"] for p in stats["recent_projects"]} == {
            "Aluminium Extrusion", "Copper Cable", "Titanium Frame"
        }
        assert stats["top_creators"] == [
            {"email": "analyst@example.com", "full_name": "analyst", "project_count": 2},
            {"email": "other@example.com", "full_name": "other", "project_count": 1},
        ]

    def test_stats_requires_admin(self, client, auth_headers):
        assert client.get("/admin/projects/stats", headers=auth_headers).status_code == 403


class TestAuditLog:

    @pytest.fixture
    def activity(self, client, auth_headers, admin_headers, populated_project):
        client.post(f"/projects/{populated_project}/measurements/import",
                    json={"format": "csv", "content": "process_stage,emissions_co2\nuse,5\nuse,-1\n"},
                    headers=auth_headers)
        report_id = _generate(client, auth_headers, populated_project).json()["report_id"]
        user_id = client.get("/admin/users", params={"search": "analyst"}, headers=admin_headers).json()[0]["id"]
        client.patch(f"/admin/users/{user_id}/role", json={"role": "metallurgist"}, headers=admin_headers)
        return populated_project, report_id, user_id

    def _logs(self, client, headers, **params):
        response = client.get("/admin/logs", params=params, headers=headers)
        assert response.status_code == 200
        return response.json()

    def test_requires_admin(self, client, auth_headers):
        assert client.get("/admin/logs", headers=auth_headers).status_code == 403

    def test_every_change_recorded(self, client, admin_headers, activity):
        body = self._logs(client, admin_headers)
        assert body["total"] == 5
        assert body["by_action"] == {"create": 2, "update": 2, "delete": 0, "login": 0, "logout": 0, "upload": 1}
        assert body["by_resource"] == {"project": 2, "report": 1, "user": 1, "upload": 1}
        assert all(entry["ip_address"] == "testclient" for entry in body["logs"])

    def test_newest_first(self, client, admin_headers, activity):
        stamps = [entry["created_at"] for entry in self._logs(client, admin_headers)["logs"]]
        assert stamps == sorted(stamps, reverse=True)

    def test_entries_name_the_resource(self, client, admin_headers, activity):
        project_id, report_id, user_id = activity
        report = self._logs(client, admin_headers, resource_type="report")["logs"]
        assert [e["resource_id"] for e in report] == [report_id]
        assert report[0]["details"] == {"project_id": project_id, "report_type": "summary"}
        assert report[0]["user_email"] == "analyst@example.com"

        role = self._logs(client, admin_headers, resource_type="user")["logs"][0]
        assert role["resource_id"] == user_id
        assert role["user_name"] == "admin"
        assert role["details"] == {"role": {"from": "engineer", "to": "metallurgist"}}

    def test_upload_details(self, client, admin_headers, activity):
        upload = self._logs(client, admin_headers, action="upload")["logs"]
        assert len(upload) == 1
        assert upload[0]["details"] == {"format": "csv", "rejected": 1, "measurements": 1}

    def test_action_filter(self, client, admin_headers, activity):
        body = self._logs(client, admin_headers, action="create")
        assert body["total"] == 2
        assert {e["resource_type"] for e in body["logs"]} == {"project", "report"}
        # Counts always cover the whole log
        assert body["by_action"]["update"] == 2

    def test_search(self, client, admin_headers, activity):
        assert self._logs(client, admin_headers, search="ADMIN")["total"] == 1
        assert self._logs(client, admin_headers, search="upload")["total"] == 1
        assert self._logs(client, admin_headers, search="testclient")["total"] == 5
        assert self._logs(client, admin_headers, search="nobody")["logs"] == []

    def test_limit(self, client, admin_headers, activity):
        body = self._logs(client, admin_headers, limit=2)
        assert len(body["logs"]) == 2
        assert body["total"] == 5

    def test_status_change_recorded(self, client, auth_headers, admin_headers, project_id):
        client.patch(f"/projects/{project_id}/status", json={"status": "archived"}, headers=auth_headers)
        updates = self._logs(client, admin_headers, action="update")["logs"]
        assert updates[0]["details"] == {"status": {"from": "active", "to": "archived"}}

    def test_rejected_change_not_recorded(self, client, auth_headers, admin_headers, project_id):
        client.post(f"/projects/{project_id}/measurements",
                    json=[{"process_stage": "use", "recyclability": 120}], headers=auth_headers)
        assert self._logs(client, admin_headers)["total"] == 1
