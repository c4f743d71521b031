"""Itinerary Flow - per-session driver for the conversational planner graph"""
import asyncio
from typing import Any, Dict, Optional

from loguru import logger

from graph.policies import match_option
from graph.supervisor import build_planner_graph
from models.planner import ErrorKind
from models.state import CreditRequestStatus, FlowEvent, FlowPhase, PlannerState, PostItineraryAction
from services.api_client import ApiClient, TokenStore
from services.planner_api import PlannerApi

# Routing fields are cleared between turns and left out of snapshots
TURN_FIELDS = {"event", "user_input", "next_action"}


class PlannerFlowError(RuntimeError):
    """Misuse of a flow: disposed, or an action that is not currently offered."""


class ItineraryFlow:
    """
    One traveler's walk through city selection, questions, itinerary and guides.

    Each public call is one turn: the current state plus an event goes through
    the compiled graph and the output replaces `state`. Input arriving while a
    turn is in flight is ignored, as the send control is disabled while
    loading. `dispose()` cancels the in-flight turn and its late result is
    dropped.
    """

    def __init__(self, api: PlannerApi, city: Optional[str] = None, ai_notice: Optional[bool] = None) -> None:
        self.api = api
        self.city = city or None
        self.state = PlannerState(fixed_city=self.city)
        self.is_loading = False
        self._graph = build_planner_graph(api, ai_notice=ai_notice)
        self._task: Optional[asyncio.Task] = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def credit_request_available(self) -> bool:
        return (
            self.state.error_kind == ErrorKind.INSUFFICIENT_CREDITS
            and self.state.credit_request == CreditRequestStatus.IDLE
        )

    async def start(self) -> PlannerState:
        """Load the city catalog; repeatable while the flow is still in INIT."""
        if self.state.phase != FlowPhase.INIT:
            return self.state
        return await self._run(FlowEvent.MOUNT)

    async def send(self, text: str) -> PlannerState:
        text = (text or "").strip()
        if not text or self.is_loading:
            return self.state

        if self.state.phase == FlowPhase.POST_ITINERARY:
            choice = match_option([a.value for a in PostItineraryAction], text)
            if choice == PostItineraryAction.MODIFY_PREFERENCES.value:
                return await self.modify_preferences()

        return await self._run(FlowEvent.MESSAGE, user_input=text)

    async def choose(self, action: str) -> PlannerState:
        """Handle a click on one of the post-itinerary options."""
        try:
            chosen = PostItineraryAction(action)
        except ValueError as exc:
            raise PlannerFlowError(f"Unknown action: {action}") from exc

        if chosen is PostItineraryAction.GENERATE_NEW:
            return await self.generate_new_itinerary()
        return await self.modify_preferences()

    async def generate_new_itinerary(self) -> PlannerState:
        """Re-submit the current answer set unchanged."""
        if self.is_loading:
            return self.state
        self._require_post_itinerary(PostItineraryAction.GENERATE_NEW)
        return await self._run(FlowEvent.GENERATE)

    async def modify_preferences(self) -> PlannerState:
        """Full reset; a preset city skips straight to its questions."""
        if self.is_loading:
            return self.state
        self._require_post_itinerary(PostItineraryAction.MODIFY_PREFERENCES)
        fresh = PlannerState(fixed_city=self.city, cities=self.state.cities)
        return await self._run(FlowEvent.RESTART, base=fresh)

    async def request_credits(self) -> PlannerState:
        if not self.credit_request_available:
            raise PlannerFlowError("Credit request is not available")

        if self.is_loading:
            return self.state

        self.state = self.state.model_copy(update={"credit_request": CreditRequestStatus.REQUESTING})
        return await self._run(FlowEvent.REQUEST_CREDITS)

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._task is not None and not self._task.done():
            logger.debug("[flow] disposing with a turn in flight; cancelling")
            self._task.cancel()
        await self.api.close()

    def _require_post_itinerary(self, action: PostItineraryAction) -> None:
        if self.state.phase != FlowPhase.POST_ITINERARY:
            raise PlannerFlowError(f'"{action.value}" is not available in phase {self.state.phase.value}')

    def snapshot(self) -> Dict[str, Any]:
        data = self.state.model_dump(mode="json", exclude=TURN_FIELDS)
        data["is_loading"] = self.is_loading
        data["credit_request_available"] = self.credit_request_available
        return data

    async def _run(
        self,
        event: FlowEvent,
        user_input: Optional[str] = None,
        base: Optional[PlannerState] = None,
    ) -> PlannerState:
        if self._disposed:
            raise PlannerFlowError("Flow has been disposed")
        if self.is_loading:
            return self.state

        current = base or self.state
        turn_input = {**dict(current), "event": event, "user_input": user_input, "next_action": None}

        self.is_loading = True
        self._task = asyncio.ensure_future(self._graph.ainvoke(turn_input))
        try:
            out = await self._task
        except asyncio.CancelledError:
            if self._disposed:
                logger.debug(f"[flow] {event.value} turn dropped after dispose")
                return self.state
            raise
        finally:
            self.is_loading = False
            self._task = None

        if self._disposed:
            logger.debug(f"[flow] late {event.value} result dropped after dispose")
            return self.state

        self.state = PlannerState.model_validate(
            {**out, "event": None, "user_input": None, "next_action": None}
        )
        return self.state


def create_flow(
    token: Optional[str],
    city: Optional[str] = None,
    base_url: Optional[str] = None,
    transport=None,
) -> ItineraryFlow:
    """Build a flow with its own authenticated client."""
    client = ApiClient(TokenStore(token), base_url=base_url, transport=transport)
    return ItineraryFlow(PlannerApi(client), city=city)
