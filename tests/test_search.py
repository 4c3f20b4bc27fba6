"""Tests for the web search proxy."""

import json

import httpx
import pytest

from app.deps import get_search_service
from app.main import app
from app.services import SearchError, TavilySearch
from app.services.search import summarize_results


def install_search(handler, api_key="tvly-test"):
    service = TavilySearch(api_key=api_key, transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_search_service] = lambda: service
    return service


class TestSummarizeResults:
    def test_prefers_answer(self):
        body = {"answer": "It is sunny.", "results": [{"content": "ignored"}]}
        assert summarize_results(body) == "It is sunny."

    def test_joins_result_contents(self):
        body = {"results": [{"content": "First"}, {"content": ""}, {"title": "x"}, {"content": "Second"}]}
        assert summarize_results(body) == "First \n Second"

    def test_no_answer(self):
        assert summarize_results({"results": []}) == "No answer available."
        assert summarize_results({"answer": None}) == "No answer available."


class TestTavilySearch:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"answer": "42"})

        service = TavilySearch(api_key="tvly-test", transport=httpx.MockTransport(handler))
        assert await service.summarize("meaning of life") == "42"
        assert seen["url"] == "https://api.tavily.com/search"
        assert seen["body"] == {
            "api_key": "tvly-test",
            "query": "meaning of life",
            "max_results": 3,
            "include_answer": True,
        }

    @pytest.mark.asyncio
    async def test_upstream_error_detail(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"detail": {"error": "Unauthorized: missing or invalid API key."}})

        service = TavilySearch(api_key="bad", transport=httpx.MockTransport(handler))
        with pytest.raises(SearchError, match="invalid API key"):
            await service.summarize("anything")


class TestSearchEndpoint:
    def test_answer(self, client):
        install_search(lambda request: httpx.Response(200, json={"answer": "Bring an umbrella."}))
        response = client.post("/api/search", json={"query": "weather today"})
        assert response.status_code == 200
        assert response.json() == {"summary": "Bring an umbrella."}

    def test_results_without_answer(self, client):
        install_search(
            lambda request: httpx.Response(
                200, json={"results": [{"content": "Rain at noon"}, {"content": "Clear by evening"}]}
            )
        )
        response = client.post("/api/search", json={"query": "weather"})
        assert response.json()["summary"] == "Rain at noon \n Clear by evening"

    def test_query_is_trimmed(self, client):
        seen = {}

        def handler(request):
            seen["query"] = json.loads(request.content)["query"]
            return httpx.Response(200, json={})

        install_search(handler)
        response = client.post("/api/search", json={"query": "  bus times  "})
        assert response.json() == {"summary": "No answer available."}
        assert seen["query"] == "bus times"

    @pytest.mark.parametrize("body", [{}, {"query": ""}, {"query": "   "}])
    def test_missing_query(self, client, body):
        install_search(lambda request: httpx.Response(200, json={}))
        response = client.post("/api/search", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "'query' is required"}

    def test_malformed_json_is_400_even_without_key(self, client):
        install_search(lambda request: httpx.Response(200, json={}), api_key=None)
        response = client.post(
            "/api/search", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}

    def test_non_object_body(self, client):
        install_search(lambda request: httpx.Response(200, json={}))
        response = client.post("/api/search", json=["weather"])
        assert response.status_code == 400
        assert "error" in response.json()

    def test_wrong_type(self, client):
        install_search(lambda request: httpx.Response(200, json={}))
        response = client.post("/api/search", json={"query": 12})
        assert response.status_code == 400
        assert "query" in response.json()["error"]

    def test_missing_key(self, client):
        install_search(lambda request: httpx.Response(200, json={}), api_key=None)
        response = client.post("/api/search", json={"query": "weather"})
        assert response.status_code == 500
        assert response.json() == {"error": "Missing TAVILY_API_KEY"}

    def test_upstream_failure(self, client):
        install_search(lambda request: httpx.Response(432, json={"error": "Plan limit exceeded"}))
        response = client.post("/api/search", json={"query": "weather"})
        assert response.status_code == 502
        assert response.json() == {"error": "Plan limit exceeded"}

    def test_upstream_failure_without_text(self, client):
        install_search(lambda request: httpx.Response(500, content=b"oops"))
        response = client.post("/api/search", json={"query": "weather"})
        assert response.status_code == 502
        assert response.json() == {"error": "Tavily search failed"}

    def test_transport_error(self, client):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        install_search(handler)
        response = client.post("/api/search", json={"query": "weather"})
        assert response.status_code == 502
        assert response.json() == {"error": "connection refused"}

    def test_search_needs_no_auth(self, client):
        install_search(lambda request: httpx.Response(200, json={"answer": "ok"}))
        response = client.post("/api/search", json={"query": "weather"})
        assert response.status_code == 200
