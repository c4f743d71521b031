from typing import Any, Dict, List, Optional, Tuple

import httpx
import jwt
import pytest

from agents.planner.graph import ItineraryFlow
from services.api_client import ApiClient, TokenStore
from services.planner_api import PlannerApi

BASE_URL = "http://backend.test"
TOKEN = jwt.encode({"id": "user-42", "role": "user"}, "test-secret", algorithm="HS256")


def question(
    qid: str,
    order: int,
    type: str = "text",
    status: str = "active",
    options: Optional[List[str]] = None,
    text: Optional[str] = None,
) -> Dict[str, Any]:
    q = {
        "_id": qid,
        "questionText": text or f"Question {qid}?",
        "cityId": None,
        "status": status,
        "order": order,
        "createdAt": "2025-01-01T00:00:00.000Z",
        "updatedAt": "2025-01-01T00:00:00.000Z",
        "__v": 0,
        "type": type,
    }
    if options is not None:
        q["options"] = options
    return q


class FakeBackend:
    """In-process stand-in for the marketplace backend."""

    def __init__(self) -> None:
        self.cities = [
            {"_id": "c1", "cityName": "Paris", "order": 1},
            {"_id": "c2", "cityName": "Rome", "order": 2},
        ]
        self.questions: Dict[str, List[Dict[str, Any]]] = {
            "c1": [
                question("q-style", 2, "common", options=["Budget", "Luxury"], text="Travel style?"),
                question("q-days", 1, "number", text="How many days?"),
                question("q-old", 0, "text", status="inactive"),
            ],
            "c2": [],
        }
        self.plan_reply: Tuple[int, Dict[str, Any]] = (
            200,
            {"success": True, "data": {"itinerary": "Day 1: **Louvre** and Seine walk", "planId": "plan-1"}},
        )
        self.credit_reply: Tuple[int, Dict[str, Any]] = (200, {"success": True})
        self.guides = [
            {"_id": "g1", "name": "zoe", "bio": "Art tours", "languages": ["fr"], "activities": [], "active": True},
            {"_id": "g2", "name": "Adam", "bio": "Food", "languages": ["en"], "activities": [], "active": True},
            {"_id": "g3", "name": "Bob", "bio": "Retired", "languages": [], "activities": [], "active": False},
            {"_id": "g4", "bio": "New guide", "languages": [], "activities": [], "active": True},
        ]
        self.overrides: Dict[str, Tuple[int, Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []
        self.on_request = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)

        path = request.url.path
        if path in self.overrides:
            status, body = self.overrides[path]
            return httpx.Response(status, json=body)

        if path == "/api/predefine/cities":
            return httpx.Response(200, json={"data": self.cities})
        if path.startswith("/api/predefine/questions/city/"):
            city_id = path.rsplit("/", 1)[1]
            return httpx.Response(200, json={"success": True, "data": self.questions.get(city_id, [])})
        if path == "/api/travelPlan":
            status, body = self.plan_reply
            return httpx.Response(status, json=body)
        if path == "/api/credit/request":
            status, body = self.credit_reply
            return httpx.Response(status, json=body)
        if path == "/api/search/guides/city":
            return httpx.Response(200, json={"data": self.guides})
        return httpx.Response(404, json={"message": "Not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_api(backend):
    def _make(token: Optional[str] = TOKEN, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs) -> PlannerApi:
        client = ApiClient(TokenStore(token), base_url=BASE_URL, transport=transport or backend.transport())
        return PlannerApi(client, **kwargs)

    return _make


@pytest.fixture
def make_flow(make_api):
    def _make(city: Optional[str] = None, token: Optional[str] = TOKEN, **kwargs) -> ItineraryFlow:
        return ItineraryFlow(make_api(token=token, **kwargs), city=city, ai_notice=False)

    return _make
