"""Tests for the hosted pipeline client against a mocked transport."""

import json

import httpx
import pytest
import tenacity

from textcarve.cloud import CloudClient, CloudError, Pipeline, PipelineNotFoundError
from textcarve.core.config import SETTINGS

SAVED = {
    "id": "pl_1",
    "slug": "docs",
    "description": "Docs pipeline",
    "organization_slug": "acme",
    "steps": [{"type": "chunk", "component": "recursive", "chunk_size": 256}],
    "created_at": "2026-01-01T00:00:00Z",
    "updated_at": "2026-01-01T00:00:00Z",
}


class FakeApi:
    """Records requests and answers like the pipeline API."""

    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        assert request.headers["Authorization"] == "Bearer test-key"

        method, path = request.method, request.url.path
        if method == "GET" and path == "/v1/pipeline":
            return httpx.Response(200, json={"organization_slug": "acme", "pipelines": [SAVED]})
        if method == "POST" and path == "/v1/pipeline/validate":
            return httpx.Response(200, json={"valid": False, "message": "bad", "errors": ["no chunker"]})
        if method == "POST" and path == "/v1/pipeline":
            return httpx.Response(201, json={**SAVED, "slug": body["slug"], "steps": body["steps"]})
        if method == "GET" and path == "/v1/pipeline/docs":
            return httpx.Response(200, json=SAVED)
        if method == "GET":
            return httpx.Response(404, text="not found")
        if method == "PUT":
            return httpx.Response(200, json={**SAVED, "updated_at": "2026-02-02T00:00:00Z"})
        if method == "DELETE":
            return httpx.Response(200, json={"message": "deleted"})
        if method == "POST" and path.startswith("/v1/pipeline/"):
            text = body["text"]
            return httpx.Response(
                200,
                json={
                    "chunks": [
                        {"text": text[:5], "start_index": 0, "end_index": 5, "token_count": 2},
                        {
                            "text": text[5:],
                            "start_index": 5,
                            "end_index": len(text),
                            "token_count": 3,
                            "embedding": [0.1, 0.2],
                        },
                    ]
                },
            )
        return httpx.Response(500, text="unexpected")


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def client(api):
    return CloudClient(api_key="test-key", transport=httpx.MockTransport(api))


class TestBuilder:
    def test_steps_and_describe(self, client):
        pipeline = (
            Pipeline("my-pipe", client=client)
            .process_with("text")
            .chunk_with("recursive", chunk_size=512)
            .refine_with("overlap", context_size=64)
        )
        assert pipeline.describe() == "process(text) -> chunk(recursive) -> refine(overlap)"
        assert pipeline.to_config()[1] == {"type": "chunk", "component": "recursive", "chunk_size": 512}

    def test_to_config_is_a_copy(self, client):
        pipeline = Pipeline("p", client=client).chunk_with("sentence")
        pipeline.to_config()[0]["component"] = "changed"
        assert pipeline.steps[0]["component"] == "sentence"

    def test_reset(self, client):
        pipeline = Pipeline("p", client=client).chunk_with("sentence").reset()
        assert pipeline.describe() == "Empty pipeline"

    @pytest.mark.parametrize("slug", ["Has Caps", "spaces here", "dots.no", ""])
    def test_invalid_slug(self, client, slug):
        with pytest.raises(ValueError):
            Pipeline(slug, client=client)

    def test_api_key_required(self, monkeypatch):
        monkeypatch.setattr(SETTINGS, "TEXTCARVE_API_KEY", None)
        with pytest.raises(ValueError, match="API key"):
            Pipeline("docs")

    def test_api_key_from_environment(self, monkeypatch, api):
        monkeypatch.setattr(SETTINGS, "TEXTCARVE_API_KEY", None)
        monkeypatch.setenv("TEXTCARVE_API_KEY", "test-key")
        pipeline = Pipeline.get("docs", transport=httpx.MockTransport(api))
        assert pipeline.is_saved


class TestRemote:
    def test_run_saves_first_then_executes(self, client, api):
        pipeline = Pipeline("fresh", description="new", client=client).chunk_with("recursive")
        chunks = pipeline.run(text="Hello world")

        assert [m for m, _, _ in api.requests] == ["POST", "POST"]
        assert api.requests[0][1] == "/v1/pipeline"
        assert api.requests[0][2]["steps"] == [{"type": "chunk", "component": "recursive"}]
        assert api.requests[1] == ("POST", "/v1/pipeline/fresh", {"text": "Hello world"})
        assert pipeline.is_saved
        assert pipeline.id == "pl_1"
        assert [c.text for c in chunks] == ["Hello", " world"]
        assert chunks[1].end_index == 11

    def test_second_run_does_not_save_again(self, client, api):
        pipeline = Pipeline("fresh", client=client).chunk_with("recursive")
        pipeline.run(text="Hello world")
        pipeline.run(text="Again here")
        assert [p for _, p, _ in api.requests].count("/v1/pipeline") == 1

    def test_run_from_file(self, client, api, tmp_path):
        path = tmp_path / "in.txt"
        path.write_text("file contents", encoding="utf-8")
        Pipeline.get("docs", client=client).run(filepath=str(path))
        assert api.requests[-1][2] == {"text": "file contents"}

    def test_run_requires_input(self, client):
        with pytest.raises(ValueError):
            Pipeline("docs", client=client).chunk_with("recursive").run()

    def test_cannot_save_empty_pipeline(self, client):
        with pytest.raises(ValueError, match="no steps"):
            Pipeline("empty", client=client).run(text="x")

    def test_get(self, client):
        pipeline = Pipeline.get("docs", client=client)
        assert pipeline.is_saved
        assert pipeline.description == "Docs pipeline"
        assert pipeline.describe() == "chunk(recursive)"

    def test_get_missing(self, client):
        with pytest.raises(PipelineNotFoundError, match="not found"):
            Pipeline.get("missing", client=client)

    def test_list(self, client):
        pipelines = Pipeline.list(client=client)
        assert [p.slug for p in pipelines] == ["docs"]
        assert all(p.is_saved for p in pipelines)

    def test_validate(self, client, api):
        result = Pipeline.validate([{"type": "refine", "component": "overlap"}], client=client)
        assert result == {"valid": False, "errors": ["no chunker"]}
        assert api.requests[-1][2] == {"steps": [{"type": "refine", "component": "overlap"}]}

    def test_update_and_delete(self, client, api):
        pipeline = Pipeline.get("docs", client=client)
        pipeline.update(description="renamed")
        assert pipeline.description == "renamed"
        assert pipeline.updated_at == "2026-02-02T00:00:00Z"
        assert api.requests[-1][0] == "PUT"
        assert api.requests[-1][2]["description"] == "renamed"

        pipeline.delete()
        assert not pipeline.is_saved
        assert pipeline.id is None

    def test_update_without_changes_is_local(self, client, api):
        Pipeline("idle", client=client).update()
        assert api.requests == []


class TestClientErrors:
    def test_http_error_carries_server_message(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(500, text="boom"))
        client = CloudClient(api_key="k", transport=transport)
        with pytest.raises(CloudError, match="boom") as excinfo:
            client.request("GET", "/v1/pipeline")
        assert excinfo.value.status_code == 500

    def test_transport_errors_are_retried(self, monkeypatch):
        monkeypatch.setattr(tenacity.nap.time, "sleep", lambda seconds: None)
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"pipelines": []})

        client = CloudClient(api_key="k", transport=httpx.MockTransport(handler))
        assert client.request("GET", "/v1/pipeline") == {"pipelines": []}
        assert len(calls) == 3
