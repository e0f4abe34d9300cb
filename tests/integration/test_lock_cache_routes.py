from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from scheme_migration.api.deps import get_lock_store
from scheme_migration.core.config import settings
from scheme_migration.core.database import get_db
from scheme_migration.core.exceptions import StoreUnavailable
from scheme_migration.main import app
from scheme_migration.schemas import MigrationLock
from tests.fakes import CRED_ID, PSA_ID, PSTR, RecordingStore, bearer

LOCK_JSON = {"pstr": PSTR, "credId": CRED_ID, "psaId": PSA_ID}


@pytest.fixture()
def client(db_engine) -> Generator[TestClient, None, None]:
    TestingSession = sessionmaker(bind=db_engine, autoflush=False, future=True, expire_on_commit=False)

    def override_get_db():
        with TestingSession() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def failing_store() -> Generator[None, None, None]:
    app.dependency_overrides[get_lock_store] = lambda: RecordingStore(error=StoreUnavailable("down"))
    yield
    app.dependency_overrides.pop(get_lock_store, None)


def test_get_lock_on_scheme_returns_lock(client, auth_headers) -> None:
    assert client.post("/api/v1/lock", headers=auth_headers).status_code == 200

    response = client.get("/api/v1/lock-on-scheme", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == LOCK_JSON


def test_get_lock_on_scheme_not_found(client, auth_headers) -> None:
    response = client.get("/api/v1/lock-on-scheme", headers=auth_headers)

    assert response.status_code == 404
    assert response.content == b""


def test_get_lock_on_scheme_does_not_need_cred_id(client) -> None:
    headers = {**bearer(cred_id=None), "pstr": PSTR}

    assert client.get("/api/v1/lock-on-scheme", headers=headers).status_code == 404


def test_unauthenticated_request_is_rejected(client) -> None:
    response = client.get("/api/v1/lock-on-scheme", headers={"pstr": PSTR})

    assert response.status_code == 401


def test_store_failure_is_a_server_error(client, auth_headers, failing_store) -> None:
    response = client.get("/api/v1/lock-on-scheme", headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_missing_pstr_header_is_bad_request(client) -> None:
    response = client.get("/api/v1/lock-on-scheme", headers=bearer())

    assert response.status_code == 400


def test_get_lock_for_caller(client, auth_headers) -> None:
    client.post("/api/v1/lock", headers=auth_headers)

    response = client.get("/api/v1/lock", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == LOCK_JSON


def test_get_lock_held_by_someone_else_is_not_found(client, auth_headers) -> None:
    other = {**bearer("someone-else"), "pstr": PSTR, "psaId": PSA_ID}
    client.post("/api/v1/lock", headers=other)

    assert client.get("/api/v1/lock", headers=auth_headers).status_code == 404


@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/api/v1/lock"),
        ("GET", "/api/v1/lock-by-user"),
        ("POST", "/api/v1/lock"),
        ("DELETE", "/api/v1/lock-by-user"),
        ("DELETE", "/api/v1/lock"),
    ],
)
def test_missing_cred_id_is_distinguishable(client, method, path) -> None:
    headers = {**bearer(cred_id=None), "pstr": PSTR, "psaId": PSA_ID}

    response = client.request(method, path, headers=headers)

    assert response.status_code == 403
    assert "credId" in response.json()["detail"]


def test_get_lock_by_user(client, auth_headers) -> None:
    client.post("/api/v1/lock", headers=auth_headers)

    response = client.get("/api/v1/lock-by-user", headers=bearer())

    assert response.status_code == 200
    assert response.json() == LOCK_JSON


def test_get_lock_by_user_not_found(client) -> None:
    assert client.get("/api/v1/lock-by-user", headers=bearer()).status_code == 404


def test_lock_on_second_scheme_replaces_first(client) -> None:
    client.post("/api/v1/lock", headers={**bearer("U1"), "pstr": "S1", "psaId": "P1"})
    client.post("/api/v1/lock", headers={**bearer("U1"), "pstr": "S2", "psaId": "P1"})

    by_user = client.get("/api/v1/lock-by-user", headers=bearer("U1"))
    on_s1 = client.get("/api/v1/lock-on-scheme", headers={**bearer("U1"), "pstr": "S1"})

    assert by_user.json() == {"pstr": "S2", "credId": "U1", "psaId": "P1"}
    assert on_s1.status_code == 404


def test_lock_requires_psa_id(client) -> None:
    response = client.post("/api/v1/lock", headers={**bearer(), "pstr": PSTR})

    assert response.status_code == 400


def test_remove_lock_on_scheme(client, auth_headers) -> None:
    client.post("/api/v1/lock", headers=auth_headers)

    assert client.delete("/api/v1/lock-on-scheme", headers=auth_headers).status_code == 200
    assert client.delete("/api/v1/lock-on-scheme", headers=auth_headers).status_code == 200
    assert client.get("/api/v1/lock-on-scheme", headers=auth_headers).status_code == 404


def test_remove_lock_by_user(client, auth_headers) -> None:
    client.post("/api/v1/lock", headers=auth_headers)

    assert client.delete("/api/v1/lock-by-user", headers=bearer()).status_code == 200
    assert client.get("/api/v1/lock-by-user", headers=bearer()).status_code == 404


def test_remove_exact_lock_ignores_other_holders(client, auth_headers) -> None:
    client.post("/api/v1/lock", headers=auth_headers)
    stranger = {**bearer("stranger"), "pstr": PSTR, "psaId": PSA_ID}

    assert client.delete("/api/v1/lock", headers=stranger).status_code == 200
    assert client.get("/api/v1/lock-on-scheme", headers=auth_headers).json() == LOCK_JSON

    assert client.delete("/api/v1/lock", headers=auth_headers).status_code == 200
    assert client.get("/api/v1/lock-on-scheme", headers=auth_headers).status_code == 404


def test_migration_data_round_trip(client, auth_headers) -> None:
    assert client.get("/api/v1/migration-data", headers=auth_headers).status_code == 404

    saved = client.post("/api/v1/migration-data", headers=auth_headers, json={"schemeName": "Acme"})
    fetched = client.get("/api/v1/migration-data", headers=auth_headers)
    lock = client.get("/api/v1/lock-on-scheme", headers=auth_headers)

    assert saved.status_code == 200
    assert fetched.json() == {"schemeName": "Acme"}
    assert MigrationLock.model_validate(lock.json()) == MigrationLock(pstr=PSTR, cred_id=CRED_ID, psa_id=PSA_ID)

    assert client.delete("/api/v1/migration-data", headers=auth_headers).status_code == 200
    assert client.get("/api/v1/migration-data", headers=auth_headers).status_code == 404
    assert client.get("/api/v1/lock-on-scheme", headers=auth_headers).status_code == 404


def test_migration_data_must_be_an_object(client, auth_headers) -> None:
    response = client.post("/api/v1/migration-data", headers=auth_headers, json=["not", "an", "object"])

    assert response.status_code == 422


def test_responses_carry_request_id(client, auth_headers) -> None:
    response = client.get("/api/v1/lock-on-scheme", headers={**auth_headers, "X-Request-ID": "trace-42"})

    assert response.headers["X-Request-ID"] == "trace-42"


def test_health_reports_database_status(client) -> None:
    response = client.get("/api/v1/system/health")

    assert response.status_code in (200, 503)
    assert response.json()["status"] in ("healthy", "unhealthy")


def test_migration_data_save_conflicts_with_other_users_lock(client, auth_headers) -> None:
    holder = {**bearer("U2"), "pstr": PSTR, "psaId": "P2"}
    client.post("/api/v1/lock", headers=holder)

    response = client.post("/api/v1/migration-data", headers=auth_headers, json={"schemeName": "Acme"})

    assert response.status_code == 409
    assert client.get("/api/v1/lock-on-scheme", headers=holder).json() == {"pstr": PSTR, "credId": "U2", "psaId": "P2"}
    assert client.get("/api/v1/migration-data", headers=auth_headers).status_code == 404


def test_migration_data_delete_keeps_other_users_lock(client, auth_headers) -> None:
    holder = {**bearer("U2"), "pstr": PSTR, "psaId": "P2"}
    client.post("/api/v1/lock", headers=holder)

    assert client.delete("/api/v1/migration-data", headers=auth_headers).status_code == 200
    assert client.get("/api/v1/lock-on-scheme", headers=holder).json() == {"pstr": PSTR, "credId": "U2", "psaId": "P2"}


def test_openapi_title_comes_from_settings(client) -> None:
    assert client.get("/openapi.json").json()["info"]["title"] == settings.app_name
