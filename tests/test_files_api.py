"""Files API tests."""
import inspect

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import sessionmaker

from apps.backend.main import app
from apps.backend.deps import get_db
from apps.backend.config import Settings
from apps.backend.database import Base, get_test_engine
from apps.backend.models.assistant import Assistant, AssistantFile
from apps.backend.routers import files as files_router

client = TestClient(app)


def _auth(sub: str = "user_1") -> dict:
    token = jwt.encode({"sub": sub}, "test-secret", algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_db_session():
    engine = get_test_engine()
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def override_get_db(test_db_session):
    def _get_db():
        try:
            yield test_db_session
        finally:
            pass
    return _get_db


@pytest.fixture
def assistant(test_db_session):
    a = Assistant(user_id="user_1", name="Docs bot", vapi_assistant_id="va-1")
    test_db_session.add(a)
    test_db_session.commit()
    test_db_session.refresh(a)
    return a


def _upload(assistant_id, filename="faq.txt", content=b"Q: hours? A: 9-5", content_type="text/plain", sub="user_1"):
    return client.post(
        "/v1/files",
        files={"file": (filename, content, content_type)},
        data={"assistantId": assistant_id},
        headers=_auth(sub),
    )


@pytest.mark.timeout(10)
def test_upload_file_stores_record(test_db_session, override_get_db, assistant, monkeypatch):
    monkeypatch.setattr(
        "apps.backend.clients.vapi.upload_file",
        lambda filename, content, content_type: {"id": "vf-1", "status": "done"},
    )
    app.dependency_overrides[get_db] = override_get_db
    try:
        r = _upload(assistant.id)
    finally:
        app.dependency_overrides.pop(get_db, None)

    assert r.status_code == 200
    f = r.json()["file"]
    assert f["vapiFileId"] == "vf-1"
    assert f["processed"] is True
    row = test_db_session.query(AssistantFile).one()
    assert row.storage_path == "vf-1"
    assert row.assistant_id == assistant.id
    assert row.file_size == len(b"Q: hours? A: 9-5")


@pytest.mark.timeout(10)
def test_upload_rejects_unsupported_type(test_db_session, override_get_db, assistant, monkeypatch):
    monkeypatch.setattr(
        "apps.backend.clients.vapi.upload_file",
        lambda *a: pytest.fail("must not upload"),
    )
    app.dependency_overrides[get_db] = override_get_db
    try:
        r = _upload(assistant.id, filename="x.png", content=b"\x89PNG", content_type="image/png")
    finally:
        app.dependency_overrides.pop(get_db, None)

    assert r.status_code == 400
    assert r.json()["code"] == "unsupported_file_type"
    assert test_db_session.query(AssistantFile).count() == 0


@pytest.mark.timeout(10)
def test_upload_rejects_large_file(test_db_session, override_get_db, assistant, monkeypatch):
    monkeypatch.setattr(
        "apps.backend.services.assistant_files.get_settings",
        lambda: Settings(file_upload_max_bytes=8),
    )
    app.dependency_overrides[get_db] = override_get_db
    try:
        r = _upload(assistant.id, content=b"0123456789")
    finally:
        app.dependency_overrides.pop(get_db, None)

    assert r.status_code == 400
    assert r.json()["code"] == "file_too_large"


@pytest.mark.timeout(10)
def test_upload_to_foreign_assistant_is_404(test_db_session, override_get_db, assistant):
    app.dependency_overrides[get_db] = override_get_db
    try:
        r = _upload(assistant.id, sub="user_2")
    finally:
        app.dependency_overrides.pop(get_db, None)
    assert r.status_code == 404


@pytest.mark.timeout(10)
def test_upload_without_assistant_id_is_400(override_get_db):
    app.dependency_overrides[get_db] = override_get_db
    try:
        r = client.post("/v1/files", files={"file": ("a.txt", b"a", "text/plain")}, headers=_auth())
    finally:
        app.dependency_overrides.pop(get_db, None)
    assert r.status_code == 400
    assert r.json()["code"] == "missing_assistant_id"


@pytest.mark.timeout(10)
def test_list_files_returns_recent_three(monkeypatch):
    files = [{"id": f"f{i}", "name": f"n{i}.txt", "status": "done", "bytes": i} for i in range(5)]
    monkeypatch.setattr("apps.backend.clients.vapi.list_files", lambda: files)

    r = client.get("/v1/files", headers=_auth())

    assert r.status_code == 200
    data = r.json()
    assert data["count"] == 5
    assert len(data["files"]) == 5
    assert [f["id"] for f in data["recentFiles"]] == ["f0", "f1", "f2"]
    assert data["recentFiles"][0]["originalName"] == "n0.txt"


def test_upload_handler_runs_in_threadpool():
    assert not inspect.iscoroutinefunction(files_router.upload_file)
