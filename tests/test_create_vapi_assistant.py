"""Assistant creation on the voice platform: files, query tool, navigation tools."""
import base64

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from apps.backend.main import app
from apps.backend.clients import vapi
from apps.backend.services import assistants
from apps.backend.services.vapi_tools import NAVIGATION_TOOL_NAMES, is_voice_navigation

client = TestClient(app)


def _auth(sub: str = "user_1") -> dict:
    token = jwt.encode({"sub": sub}, "test-secret", algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


class _FakeVapi:
    def __init__(self, fail_files=()):
        self.fail_files = set(fail_files)
        self.uploads = []
        self.tools = []
        self.created = []
        self.updates = []

    def upload_file(self, filename, content, content_type):
        self.uploads.append((filename, content, content_type))
        if filename in self.fail_files:
            raise vapi.VapiError(vapi.VAPI_ERR_HTTP, "VAPI file upload error: 400 - bad file", upstream_status=400)
        return {"id": f"file-{len(self.uploads)}", "status": "processing"}

    def create_tool(self, payload):
        self.tools.append(payload)
        return {"id": f"tool-{len(self.tools)}"}

    def create_assistant(self, payload):
        self.created.append(payload)
        return {"id": "va-new", "name": payload["name"]}

    def update_assistant(self, assistant_id, payload):
        self.updates.append((assistant_id, payload))
        return {}

    def install(self, monkeypatch):
        for name in ("upload_file", "create_tool", "create_assistant", "update_assistant"):
            monkeypatch.setattr(vapi, name, getattr(self, name))


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def test_is_voice_navigation():
    assert is_voice_navigation("voice-navigation", "")
    assert is_voice_navigation(None, "Use scroll_page to move")
    assert is_voice_navigation("support", "call click_element when asked")
    assert not is_voice_navigation("support", "Answer questions")


@pytest.mark.timeout(10)
def test_create_with_files_and_navigation(monkeypatch):
    fake = _FakeVapi(fail_files={"broken.txt"})
    fake.install(monkeypatch)

    out = assistants.create_vapi_assistant(
        "Acme Helper",
        "You guide visitors.",
        template="voice-navigation",
        files=[
            {"name": "faq.txt", "type": "text/plain", "content": _b64(b"Q: A")},
            {"name": "broken.txt", "type": "text/plain", "content": _b64(b"x")},
        ],
    )

    assert out["vapiAssistantId"] == "va-new"
    assert out["filesUploaded"] == 2
    assert out["toolsCreated"] == 5

    query_tool = fake.tools[0]
    assert query_tool["type"] == "query"
    assert query_tool["queryKnowledgeBase"]["fileIds"] == ["file-1"]
    assert query_tool["knowledgeBases"][0]["name"] == "acme-helper-kb"
    assert [t["function"]["name"] for t in fake.tools[1:]] == list(NAVIGATION_TOOL_NAMES)
    for t in fake.tools[1:]:
        assert t["function"]["parameters"]["required"][0] == "sessionId"

    payload = fake.created[0]
    assert payload["model"]["messages"] == [{"role": "system", "content": "You guide visitors."}]
    assert payload["firstMessage"] == "Hello! How can I help you today?"
    assert payload["voice"] == {"provider": "vapi", "voiceId": "Elliot"}
    assert payload["backgroundSpeechDenoisingPlan"]["smartDenoisingPlan"]["enabled"] is False

    assert len(fake.updates) == 1
    assistant_id, update = fake.updates[0]
    assert assistant_id == "va-new"
    assert update["model"]["toolIds"] == ["tool-1", "tool-2", "tool-3", "tool-4", "tool-5"]


@pytest.mark.timeout(10)
def test_create_plain_assistant_has_no_tools(monkeypatch):
    fake = _FakeVapi()
    fake.install(monkeypatch)

    out = assistants.create_vapi_assistant(None, None)

    assert out["toolsCreated"] == 0
    assert fake.created[0]["name"] == "Voice Assistant"
    assert fake.created[0]["model"]["messages"][0]["content"] == "You are a helpful voice assistant."
    assert fake.tools == []
    assert fake.updates == []


@pytest.mark.timeout(10)
def test_create_skips_query_tool_when_no_upload_succeeds(monkeypatch):
    fake = _FakeVapi(fail_files={"a.txt"})
    fake.install(monkeypatch)

    out = assistants.create_vapi_assistant(
        "Bot", "Answer questions", files=[{"name": "a.txt", "type": "text/plain", "content": _b64(b"a")}]
    )

    assert out["toolsCreated"] == 0
    assert fake.tools == []


@pytest.mark.timeout(10)
def test_create_endpoint_platform_error_is_envelope(monkeypatch):
    def create_assistant(payload):
        raise vapi.VapiError(vapi.VAPI_ERR_HTTP, "VAPI create assistant error: 401 - invalid key", upstream_status=401)

    monkeypatch.setattr(vapi, "create_assistant", create_assistant)

    r = client.post(
        "/v1/assistants/vapi",
        json={"assistantData": {"botName": "Bot", "systemPrompt": "Hi"}},
        headers=_auth(),
    )

    assert r.status_code == 500
    data = r.json()
    assert data["code"] == "vapi_http_error"
    assert "401" in data["message"]


@pytest.mark.timeout(10)
def test_create_endpoint_success(monkeypatch):
    fake = _FakeVapi()
    fake.install(monkeypatch)

    r = client.post(
        "/v1/assistants/vapi",
        json={"assistantData": {"botName": "Bot", "systemPrompt": "Hi", "voice": "Paige"}},
        headers=_auth(),
    )

    assert r.status_code == 200
    assert r.json()["vapiAssistantId"] == "va-new"
    assert fake.created[0]["voice"]["voiceId"] == "Paige"
