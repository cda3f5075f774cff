import pytest
from fastapi.testclient import TestClient

from conftest import (
    BIAS_JSON,
    CREDIBILITY_JSON,
    FOLLOW_UPS_JSON,
    FakeIndex,
    FakeLLM,
    FakeRedis,
    vaccine_providers,
)
from reality_check.core.app import AppServices, create_app
from reality_check.services.aggregator import SearchAggregator
from reality_check.services.analysis_service import AnalysisService
from reality_check.services.cache import CacheManager
from reality_check.services.research_orchestrator import ResearchPipeline
from reality_check.services.session_store import InMemorySessionStore
from reality_check.utils.errors import SecondaryIndexError


def _services(llm=None, redis=None, index=None) -> AppServices:
    llm = llm or FakeLLM(
        credibility=CREDIBILITY_JSON,
        response="Evidence suggests vaccines are safe.",
        follow_ups=FOLLOW_UPS_JSON,
    )
    cache = CacheManager(client=redis or FakeRedis())
    aggregator = SearchAggregator(vaccine_providers(), index)
    analyzer = AnalysisService(llm)
    sessions = InMemorySessionStore()
    return AppServices(
        cache=cache,
        aggregator=aggregator,
        llm=llm,
        analyzer=analyzer,
        sessions=sessions,
        pipeline=ResearchPipeline(aggregator, cache, analyzer, llm, sessions),
        index=index,
    )


@pytest.fixture
def services():
    return _services()


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as c:
        yield c


def _start(client, **kwargs) -> str:
    response = client.post("/api/conversation/start", **kwargs)
    assert response.status_code == 200
    return response.json()["conversationId"]


# ---------------------------------------------------------------------------
#  Conversation over HTTP
# ---------------------------------------------------------------------------


def test_start_conversation(client, services):
    response = client.post("/api/conversation/start", headers={"X-User-Id": "user-7"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"].startswith("Hello! I'm Reality Check")
    assert len(body["suggestions"]) == 3
    assert response.headers["X-Request-ID"]

    conversation = services.sessions._items[body["conversationId"]]
    assert conversation.user_id == "user-7"


def test_start_conversation_with_body(client, services):
    conversation_id = _start(client, json={"userId": "body-user"})
    assert services.sessions._items[conversation_id].user_id == "body-user"


def test_ask_returns_answer(client):
    conversation_id = _start(client)

    response = client.post(
        "/api/conversation/ask",
        json={"conversationId": conversation_id, "question": "Are vaccines safe?"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Evidence suggests vaccines are safe."
    stats = body["metadata"]["searchStats"]
    assert stats["totalSources"] == 5
    assert stats["sourcesAnalyzed"] == 4
    assert body["metadata"]["sources"][0]["credibilityScore"] == 1.0
    assert body["metadata"]["analysis"]["confidence_level"] == "high"


def test_ask_empty_question_is_400(client):
    conversation_id = _start(client)

    response = client.post(
        "/api/conversation/ask", json={"conversationId": conversation_id, "question": "   "}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Question cannot be empty"


def test_ask_unknown_conversation_is_404(client):
    response = client.post(
        "/api/conversation/ask", json={"conversationId": "nope", "question": "Are vaccines safe?"}
    )
    assert response.status_code == 404
    assert response.json()["error"] == "Conversation not found"


def test_history(client):
    conversation_id = _start(client)
    client.post(
        "/api/conversation/ask",
        json={"conversationId": conversation_id, "question": "Are vaccines safe?"},
    )

    response = client.get(f"/api/conversation/{conversation_id}/history")

    assert response.status_code == 200
    messages = response.json()["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant"]
    assert messages[1]["metadata"]["searchStats"]["totalSources"] == 5


def test_history_unknown_is_404(client):
    assert client.get("/api/conversation/nope/history").status_code == 404


# ---------------------------------------------------------------------------
#  WebSocket
# ---------------------------------------------------------------------------


def _collect_until_terminal(ws):
    frames = []
    while True:
        frame = ws.receive_json()
        frames.append(frame)
        if frame["type"] in ("question-response", "error"):
            return frames


def test_websocket_streams_progress_then_answer(client):
    with client.websocket_connect("/api/conversation/ws") as ws:
        assert ws.receive_json()["type"] == "connected"
        ws.send_json({"type": "ask-question", "data": {"question": "Are vaccines safe?"}})

        frames = _collect_until_terminal(ws)

    assert [f["type"] for f in frames] == ["search-progress"] * 4 + ["question-response"]
    assert [f["data"]["stage"] for f in frames[:4]] == [
        "understanding",
        "searching",
        "analyzing",
        "generating",
    ]
    assert frames[-1]["data"]["message"] == "Evidence suggests vaccines are safe."


def test_websocket_reports_validation_errors(client):
    with client.websocket_connect("/api/conversation/ws") as ws:
        ws.receive_json()

        ws.send_json({"type": "ask-question", "data": {"question": ""}})
        empty = ws.receive_json()

        ws.send_json(
            {"type": "ask-question", "data": {"question": "q?", "conversationId": "unknown"}}
        )
        unknown = ws.receive_json()

        ws.send_json({"type": "something-else"})
        unsupported = ws.receive_json()

    assert empty["type"] == "error"
    assert empty["data"]["message"] == "Question cannot be empty"
    assert unknown["data"]["message"] == "Conversation not found"
    assert unsupported["type"] == "error"


def test_websocket_survives_malformed_frames(client):
    with client.websocket_connect("/api/conversation/ws") as ws:
        ws.receive_json()

        ws.send_text("not json{")
        not_json = ws.receive_json()

        ws.send_json({"type": "ask-question", "data": "Are vaccines safe?"})
        bad_data = ws.receive_json()

        ws.send_json(["ask-question"])
        not_object = ws.receive_json()

        # the socket is still usable afterwards
        ws.send_json({"type": "ask-question", "data": {"question": "Are vaccines safe?"}})
        frames = _collect_until_terminal(ws)

    assert not_json["type"] == "error"
    assert not_json["data"] == {"message": "Invalid message format"}
    assert bad_data["type"] == "error"
    assert bad_data["data"] == {"message": "Invalid message format"}
    assert not_object["type"] == "error"
    assert not_object["data"] == {"message": "Unsupported message type"}
    assert frames[-1]["type"] == "question-response"


# ---------------------------------------------------------------------------
#  Search, analysis, health
# ---------------------------------------------------------------------------


def test_search_query(client):
    response = client.post("/api/search/query", json={"query": "vaccines", "size": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 5
    assert len(body["results"]) == 2
    assert body["results"][0]["type"] == "factCheck"
    assert body["sourceCounts"]["government"] == 1


def test_search_query_validation(client):
    assert client.post("/api/search/query", json={"query": "", "size": 5}).status_code == 422
    assert client.post("/api/search/query", json={"query": "q", "size": 0}).status_code == 422


def test_credibility_analysis(client):
    response = client.post(
        "/api/analysis/credibility",
        json={"content": "Vaccines are safe", "sources": [{"title": "CDC", "url": "https://cdc.gov"}]},
    )
    assert response.status_code == 200
    assert response.json()["credibility_score"] == 0.82


def test_credibility_analysis_degrades():
    with TestClient(create_app(_services(llm=FakeLLM.unavailable()))) as c:
        response = c.post("/api/analysis/credibility", json={"content": "Vaccines are safe"})

    assert response.status_code == 200
    body = response.json()
    assert body["degraded"] is True
    assert body["key_findings"] == ["AI analysis temporarily unavailable"]


def test_bias_analysis():
    with TestClient(create_app(_services(llm=FakeLLM(bias=BIAS_JSON)))) as c:
        response = c.post(
            "/api/analysis/bias", json={"text": "Vaccines are poison!", "source": "Daily Blog"}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["bias_score"] == 0.72
    assert body["inflammatory_language"] == ["poison"]
    assert body["degraded"] is False


def test_bias_analysis_degrades(client):
    response = client.post("/api/analysis/bias", json={"text": "Vaccines are poison!"})

    assert response.status_code == 200
    body = response.json()
    assert body["degraded"] is True
    assert body["bias_score"] == 0.5
    assert body["balanced_assessment"] == "Unable to complete bias analysis"


def test_bias_analysis_requires_text(client):
    blank = client.post("/api/analysis/bias", json={"text": "   "})
    assert blank.status_code == 400
    assert blank.json()["detail"] == "Text is required"
    assert client.post("/api/analysis/bias", json={}).status_code == 422


def test_search_stats_not_configured(client):
    response = client.get("/api/search/stats")
    assert response.status_code == 503
    assert response.json()["detail"] == "Secondary index not configured"


def test_search_stats_from_index():
    stats = {"news": {"total": 3, "sources": [{"source": "Reuters", "count": 3}], "avgCredibility": 0.9}}
    with TestClient(create_app(_services(index=FakeIndex(stats=stats)))) as c:
        response = c.get("/api/search/stats")

    assert response.status_code == 200
    assert response.json() == stats


def test_search_stats_index_failure_is_500():
    index = FakeIndex(error=SecondaryIndexError("cluster red"))
    with TestClient(create_app(_services(index=index))) as c:
        response = c.get("/api/search/stats")

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to retrieve stats"


def test_all_routers_mounted_under_api(client):
    paths = {route.path for route in client.app.routes}
    assert {
        "/api/conversation/start",
        "/api/conversation/ask",
        "/api/conversation/{conversation_id}/history",
        "/api/conversation/ws",
        "/api/search/query",
        "/api/search/stats",
        "/api/analysis/credibility",
        "/api/analysis/bias",
        "/api/health",
        "/api/health/cache-stats",
    } <= paths


def test_health_all_healthy(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["components"] == {
        "redis": "healthy",
        "llm": "healthy",
        "elasticsearch": "not_configured",
    }


def test_health_degraded_when_dependency_down():
    services = _services(redis=FakeRedis(fail=True), index=FakeIndex(healthy=False))
    with TestClient(create_app(services)) as c:
        response = c.get("/api/health")

    assert response.status_code == 503
    components = response.json()["components"]
    assert components["redis"] == "unhealthy"
    assert components["elasticsearch"] == "unhealthy"


def test_cache_stats(client):
    client.post(
        "/api/conversation/ask",
        json={"conversationId": _start(client), "question": "Are vaccines safe?"},
    )
    stats = client.get("/api/health/cache-stats").json()

    assert stats["miss_count"] == 1
    assert stats["cached_searches"] == 1
