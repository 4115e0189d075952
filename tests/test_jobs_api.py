import base64
import re

import httpx
import pytest
import redis
from fastapi.testclient import TestClient

from app.main import app
from app.routers.jobs import get_dispatcher, get_repo
from app.storage.repo import Repo
from app.services.generator import TryOnJob
from app.services.segmind import SegmindClient

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")

FILES = {
    "personImage": ("person.jpg", b"person-bytes", "image/jpeg"),
    "clothingImage": ("shirt.jpg", b"shirt-bytes", "image/jpeg"),
}


class RecordingDispatcher:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def __call__(self, *args, **kwargs):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.calls.append((args, kwargs))


class BrokenRedis:
    def set(self, *args, **kwargs):
        raise redis.ConnectionError("down")

    def get(self, *args, **kwargs):
        raise redis.ConnectionError("down")


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(repo, dispatcher):
    app.dependency_overrides[get_repo] = lambda: repo
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_submit_returns_job_id_and_dispatches(client, repo, dispatcher):
    r = client.post("/api/generate", files=FILES, data={"apiKey": "secret-key"})

    assert r.status_code == 200
    job_id = r.json()["jobId"]
    assert UUID_RE.match(job_id)
    assert repo.get(job_id).status == "pending"
    (args, kwargs), = dispatcher.calls
    assert args == (job_id, base64.b64encode(b"person-bytes").decode(),
                    base64.b64encode(b"shirt-bytes").decode(), "secret-key")
    assert kwargs["created_at"] == repo.get(job_id).created_at


def test_submit_accepts_json_body(client, repo, dispatcher):
    r = client.post("/api/generate", json={"personImage": "UA==", "clothingImage": "Qw==", "apiKey": "k"})

    assert r.status_code == 200
    assert dispatcher.calls[0][0][1:] == ("UA==", "Qw==", "k")


@pytest.mark.parametrize(
    "files, data",
    [
        (FILES, {}),
        ({"personImage": FILES["personImage"]}, {"apiKey": "k"}),
        ({"personImage": FILES["personImage"], "clothingImage": ("empty.jpg", b"", "image/jpeg")}, {"apiKey": "k"}),
    ],
)
def test_submit_missing_fields_creates_nothing(client, fake_redis, dispatcher, files, data):
    r = client.post("/api/generate", files=files, data=data)

    assert r.status_code == 400
    assert r.json() == {"error": "Missing required fields"}
    assert fake_redis.writes == []
    assert dispatcher.calls == []


@pytest.mark.parametrize(
    "body",
    [
        {"personImage": "UA==", "clothingImage": "Qw=="},
        {"personImage": "", "clothingImage": "Qw==", "apiKey": "k"},
        {"personImage": "UA==", "apiKey": "k"},
        {"personImage": "UA==", "clothingImage": "Qw==", "apiKey": ""},
    ],
)
def test_json_submit_missing_fields_creates_nothing(client, fake_redis, dispatcher, body):
    r = client.post("/api/generate", json=body)

    assert r.status_code == 400
    assert r.json() == {"error": "Missing required fields"}
    assert fake_redis.writes == []
    assert dispatcher.calls == []


def test_invalid_json_body_creates_nothing(client, fake_redis, dispatcher):
    r = client.post("/api/generate", content=b"{not json", headers={"content-type": "application/json"})

    assert r.status_code == 400
    assert fake_redis.writes == []
    assert dispatcher.calls == []


def test_submit_store_failure_does_not_dispatch(client, dispatcher):
    app.dependency_overrides[get_repo] = lambda: Repo(client=BrokenRedis())

    r = client.post("/api/generate", files=FILES, data={"apiKey": "k"})

    assert r.status_code == 500
    assert "error" in r.json()
    assert dispatcher.calls == []


def test_submit_dispatch_failure_marks_job_failed(client, repo, fake_redis):
    app.dependency_overrides[get_dispatcher] = lambda: RecordingDispatcher(fail=True)

    r = client.post("/api/generate", files=FILES, data={"apiKey": "k"})

    assert r.status_code == 500
    assert r.json() == {"error": "Could not start background job"}
    (job_id,) = {key.split(":", 1)[1] for key, _ in fake_redis.writes}
    assert repo.get(job_id).status == "failed"


def test_status_of_unknown_job_is_pending(client):
    r = client.get("/api/status/does-not-exist")

    assert r.status_code == 200
    assert r.json() == {"status": "pending"}


def test_status_requires_job_id(client):
    r = client.get("/api/status")

    assert r.status_code == 400
    assert r.json() == {"error": "Job ID is required"}


def test_status_by_query_parameter(client, repo):
    repo.mark_failed("abc", "Segmind API Error: 500")

    assert client.get("/api/status", params={"job_id": "abc"}).json()["status"] == "failed"


def test_status_read_is_idempotent(client, repo):
    repo.mark_completed("abc", "data:image/png;base64,AAA", created_at=5.0)

    first = client.get("/api/status/abc")
    second = client.get("/api/status/abc")

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json() == {
        "jobId": "abc", "status": "completed", "imageUrl": "data:image/png;base64,AAA", "createdAt": 5.0,
    }


def test_status_store_failure_reports_failed(client):
    app.dependency_overrides[get_repo] = lambda: Repo(client=BrokenRedis())

    r = client.get("/api/status/abc")

    assert r.status_code == 500
    assert r.json() == {"status": "failed", "error": "Could not retrieve job status."}


def test_end_to_end_submit_poll_complete(client, repo, dispatcher):
    job_id = client.post("/api/generate", files=FILES, data={"apiKey": "k"}).json()["jobId"]
    assert UUID_RE.match(job_id)
    assert client.get(f"/api/status/{job_id}").json()["status"] == "pending"

    (args, kwargs), = dispatcher.calls
    upstream = SegmindClient("k", url="https://segmind.test/v1/segfit",
                             transport=httpx.MockTransport(
                                 lambda r: httpx.Response(200, json={"base64": "iVBORw0KGgo"})))
    TryOnJob(*args, **kwargs, repo=repo, client=upstream).run()

    body = client.get(f"/api/status/{job_id}").json()
    assert body["status"] == "completed"
    assert body["imageUrl"] == "data:image/png;base64,iVBORw0KGgo"
    assert "error" not in body


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
