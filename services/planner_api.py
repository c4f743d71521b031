from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from app.settings import settings
from models.planner import City, ErrorKind, Guide, Question, TravelPlan
from services.api_client import ApiClient, ApiError

PREDEFINE_PATH = "/api/predefine"
TRAVEL_PLAN_PATH = "/api/travelPlan"
CREDIT_REQUEST_PATH = "/api/credit/request"
GUIDES_BY_CITY_PATH = "/api/search/guides/city"

M = TypeVar("M", bound=BaseModel)


def _parse_many(model: Type[M], items: Iterable[Any], what: str) -> List[M]:
    results: List[M] = []
    for raw in items:
        try:
            results.append(model.model_validate(raw))
        except ValidationError as exc:
            # Skip malformed records
            logger.warning(f"[planner-api] skipping malformed {what}: {exc.errors()[:1]}")
    return results


def order_questions(questions: Iterable[Question]) -> List[Question]:
    """Keep active questions only, ascending by `order` (stable for ties)."""
    return sorted((q for q in questions if q.is_active), key=lambda q: q.order)


def select_active_guides(guides: Iterable[Guide]) -> List[Guide]:
    """Active guides sorted by name, case-insensitively; a missing name sorts as ""."""
    return sorted((g for g in guides if g.active), key=lambda g: (g.name or "").lower())


class PlannerApi:
    """
    Backend operations used by the itinerary flow.

    Every method raises ApiError on failure; callers decide how to surface it.
    """

    def __init__(self, client: ApiClient, guides_base_url: Optional[str] = None) -> None:
        self.client = client
        self.guides_base_url = (guides_base_url if guides_base_url is not None else settings.guides_api_url).rstrip("/")

    async def close(self) -> None:
        await self.client.close()

    async def get_cities(self) -> List[City]:
        payload = await self.client.get(f"{PREDEFINE_PATH}/cities")
        return _parse_many(City, payload.get("data") or [], "city")

    async def get_questions_by_city(self, city_id: str) -> List[Question]:
        payload = await self.client.get(f"{PREDEFINE_PATH}/questions/city/{city_id}")
        data = payload.get("data")
        if not payload.get("success") or data is None:
            raise ApiError(ErrorKind.UNKNOWN, payload.get("message") or "Failed to fetch questions")
        return order_questions(_parse_many(Question, data, "question"))

    async def create_travel_plan(
        self,
        city_name: str,
        questions: List[Question],
        answers: List[Dict[str, str]],
    ) -> TravelPlan:
        body = {
            "cityName": city_name,
            "questions": [q.to_payload() for q in questions],
            "answers": answers,
        }
        payload = await self.client.post(TRAVEL_PLAN_PATH, json=body)
        data = payload.get("data") or {}
        if not payload.get("success") or not data.get("itinerary"):
            raise ApiError(ErrorKind.UNKNOWN, payload.get("message") or "Failed to generate itinerary")

        logger.info(f"[planner-api] travel plan {data.get('planId')} created for {city_name}")
        return TravelPlan(plan_id=str(data.get("planId") or ""), itinerary=data["itinerary"])

    async def request_credits(self) -> None:
        user_id = self.client.current_user_id()
        payload = await self.client.post(CREDIT_REQUEST_PATH, json={"userId": user_id})
        if not payload.get("success"):
            raise ApiError(ErrorKind.UNKNOWN, payload.get("message") or "Failed to request credits")

    async def get_guides_by_city(self, city_name: str) -> List[Guide]:
        url = f"{self.guides_base_url}{GUIDES_BY_CITY_PATH}" if self.guides_base_url else GUIDES_BY_CITY_PATH
        payload = await self.client.get(url, params={"city": city_name})
        data = payload.get("data")
        guides = _parse_many(Guide, data if isinstance(data, list) else [], "guide")
        logger.debug(f"[planner-api] fetched {len(guides)} guides for {city_name}")
        return select_active_guides(guides)
