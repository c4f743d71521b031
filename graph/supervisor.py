from typing import Any, Dict, List, Optional

from langgraph.graph import StateGraph, START, END
from loguru import logger

from app.settings import settings
from graph import messages as chat
from graph.policies import (
    INVALID_OPTION,
    answers_payload,
    city_answer,
    first_unanswered,
    is_minimal_input,
    match_city,
    match_option,
    record_answer,
    validate_answer,
)
from models.planner import CITY_SELECTION_ID, Answer, ChatMessage, City, ErrorKind, MessageType
from models.state import CreditRequestStatus, FlowEvent, FlowPhase, PlannerState, PostItineraryAction
from services.api_client import ApiError
from services.planner_api import PlannerApi
from tools.itinerary_format import format_itinerary

FALLBACK_CITY_NAME = "your selected city"

EVENT_ROUTES = {
    FlowEvent.MOUNT: "start",
    FlowEvent.MESSAGE: "receive_message",
    FlowEvent.GENERATE: "generate_itinerary",
    FlowEvent.RESTART: "restart",
    FlowEvent.REQUEST_CREDITS: "request_credits",
}

# Which node handles typed input in each phase
PHASE_HANDLERS = {
    FlowPhase.INIT: "select_city",
    FlowPhase.AWAITING_CITY: "select_city",
    FlowPhase.AWAITING_ANSWER: "answer_question",
    FlowPhase.OFFER_GUIDE_LIST: "guide_prompt",
    FlowPhase.POST_ITINERARY: "post_itinerary",
}

NODES = [
    "start",
    "receive_message",
    "select_city",
    "load_questions",
    "answer_question",
    "generate_itinerary",
    "guide_prompt",
    "show_guides",
    "post_itinerary",
    "restart",
    "request_credits",
]


def _done(**updates: Any) -> Dict[str, Any]:
    """Finish the turn with the given state updates."""
    updates.setdefault("next_action", "end")
    return updates


def _fail(
    text: str,
    kind: Optional[ErrorKind],
    before: Optional[List[ChatMessage]] = None,
    after: Optional[List[ChatMessage]] = None,
    **updates: Any,
) -> Dict[str, Any]:
    """Append an error-flagged bot message and remember it as the current error."""
    updates["messages"] = list(before or []) + [chat.error(text)] + list(after or [])
    updates["error"] = text
    updates["error_kind"] = kind
    return _done(**updates)


def _choose_city(city: City) -> Dict[str, Any]:
    return {
        "selected_city": city.city_name,
        "answers": [Answer(question_id=CITY_SELECTION_ID, response=city.city_name)],
        "questions": [],
        "step": 0,
        "phase": FlowPhase.LOADING_QUESTIONS,
        "next_action": "load_questions",
    }


def _active_city_name(state: PlannerState) -> str:
    return state.selected_city or state.fixed_city or FALLBACK_CITY_NAME


def route_event(state: PlannerState) -> str:
    return EVENT_ROUTES.get(state.event, "end")


def follow_next_action(state: PlannerState) -> str:
    return state.next_action or "end"


class PlannerNodes:
    """
    Graph nodes for the itinerary flow.

    Each node reads the validated PlannerState and returns a partial update.
    `messages` is reduced by concatenation, so nodes return only the entries
    they add. Every node sets `next_action`, which routes to the next node or
    ends the turn.
    """

    def __init__(self, api: PlannerApi, ai_notice: Optional[bool] = None) -> None:
        self.api = api
        self.ai_notice = settings.itinerary_ai_notice if ai_notice is None else ai_notice

    async def start(self, state: PlannerState) -> Dict[str, Any]:
        try:
            cities = await self.api.get_cities()
        except ApiError as exc:
            return _fail(chat.describe_error(exc, "Failed to load cities."), exc.kind, phase=FlowPhase.INIT)

        if not cities:
            return _fail(chat.NO_CITIES, None, phase=FlowPhase.INIT)

        if not state.fixed_city:
            return _done(cities=cities, phase=FlowPhase.AWAITING_CITY, messages=[chat.city_prompt(cities)])

        city = match_city(cities, state.fixed_city)
        if city is None:
            logger.info(f"[flow] preset city {state.fixed_city!r} is not in the catalog")
            return _done(
                cities=cities,
                phase=FlowPhase.AWAITING_CITY,
                messages=[
                    chat.error(f'City "{state.fixed_city}" is not available.'),
                    chat.city_prompt(cities, chat.SELECT_VALID_CITY),
                ],
            )

        return {"cities": cities, **_choose_city(city)}

    async def receive_message(self, state: PlannerState) -> Dict[str, Any]:
        text = state.user_input or ""
        handler = PHASE_HANDLERS.get(state.phase, "end")
        logger.debug(f"[flow] input in phase {state.phase.value} -> {handler}")
        return {"messages": [chat.user(text)], "next_action": handler}

    async def select_city(self, state: PlannerState) -> Dict[str, Any]:
        cities = state.cities
        if not cities:
            try:
                cities = await self.api.get_cities()
            except ApiError as exc:
                return _fail(chat.describe_error(exc, "Failed to load cities."), exc.kind)

        text = state.user_input or ""
        city = match_city(cities, text)
        if city is None:
            return _done(
                cities=cities,
                phase=FlowPhase.AWAITING_CITY,
                messages=[
                    chat.error(f'"{text}" is not a valid city.'),
                    chat.city_prompt(cities, chat.SELECT_VALID_CITY),
                ],
            )

        return {"cities": cities, **_choose_city(city)}

    async def load_questions(self, state: PlannerState) -> Dict[str, Any]:
        city_name = state.selected_city or state.fixed_city or ""
        city = match_city(state.cities, city_name)

        # Data-integrity failures degrade to a basic itinerary
        if city is None:
            return _fail(
                f'City "{city_name}" not found.',
                None,
                questions=[],
                step=0,
                phase=FlowPhase.GENERATING,
                next_action="generate_itinerary",
            )

        try:
            questions = await self.api.get_questions_by_city(city.id)
        except ApiError as exc:
            return _fail(
                chat.describe_error(exc, "Failed to load questions."),
                exc.kind,
                questions=[],
                step=0,
                phase=FlowPhase.GENERATING,
                next_action="generate_itinerary",
            )

        if not questions:
            return {
                "questions": [],
                "step": 0,
                "messages": [chat.error(chat.NO_QUESTIONS)],
                "phase": FlowPhase.GENERATING,
                "next_action": "generate_itinerary",
            }

        logger.debug(f"[flow] {len(questions)} questions for {city.city_name}")
        return _done(
            questions=questions,
            step=0,
            phase=FlowPhase.AWAITING_ANSWER,
            messages=[chat.question_prompt(questions[0])],
        )

    async def answer_question(self, state: PlannerState) -> Dict[str, Any]:
        questions = state.questions
        if state.step >= len(questions):
            return _done(
                step=len(questions),
                phase=FlowPhase.POST_ITINERARY,
                messages=[chat.post_itinerary_offer()],
            )

        question = questions[state.step]
        text = state.user_input or ""

        problem = validate_answer(question, text)
        if problem:
            # Same question again, cursor untouched, nothing recorded
            return _done(messages=[chat.error(problem), chat.question_prompt(question)])

        answers = record_answer(state.answers, question.id, text)
        next_step = state.step + 1
        if next_step < len(questions):
            return _done(answers=answers, step=next_step, messages=[chat.question_prompt(questions[next_step])])

        return {"answers": answers, "phase": FlowPhase.GENERATING, "next_action": "generate_itinerary"}

    async def generate_itinerary(self, state: PlannerState) -> Dict[str, Any]:
        questions = state.questions

        gap = first_unanswered(questions, state.answers)
        if gap is not None:
            logger.info(f"[flow] question {questions[gap].id} unanswered; not generating")
            return _done(
                step=gap,
                phase=FlowPhase.AWAITING_ANSWER,
                messages=[chat.error(chat.MISSED_QUESTIONS), chat.question_prompt(questions[gap])],
            )

        city_name = city_answer(state.answers) or state.selected_city or FALLBACK_CITY_NAME
        payload = answers_payload(questions, state.answers)
        creating = chat.bot(chat.CREATING_ITINERARY)

        try:
            plan = await self.api.create_travel_plan(city_name, questions, payload)
        except ApiError as exc:
            return _fail(
                chat.describe_error(exc, "Failed to generate itinerary"),
                exc.kind,
                before=[creating],
                after=[chat.post_itinerary_offer(chat.RETRY_OFFER)],
                phase=FlowPhase.POST_ITINERARY,
            )

        text = format_itinerary(
            plan,
            city_name,
            minimal_input=is_minimal_input(questions, payload),
            with_ai_notice=self.ai_notice,
        )
        return _done(
            plan=plan,
            error=None,
            error_kind=None,
            step=len(questions),
            phase=FlowPhase.OFFER_GUIDE_LIST,
            messages=[creating, chat.bot(text, MessageType.ITINERARY), chat.guide_prompt(city_name)],
        )

    async def guide_prompt(self, state: PlannerState) -> Dict[str, Any]:
        choice = match_option(chat.GUIDE_PROMPT_OPTIONS, state.user_input or "")
        if choice is None:
            return _done(messages=[chat.error(INVALID_OPTION), chat.guide_prompt(_active_city_name(state))])
        if choice == "Yes":
            return {"next_action": "show_guides"}
        return _done(phase=FlowPhase.POST_ITINERARY, messages=[chat.post_itinerary_offer(chat.ANSWERED_ALL_OFFER)])

    async def show_guides(self, state: PlannerState) -> Dict[str, Any]:
        city_name = _active_city_name(state)
        offer = chat.post_itinerary_offer(chat.VIEWED_GUIDES_OFFER)
        try:
            guides = await self.api.get_guides_by_city(city_name)
        except ApiError as exc:
            return _done(
                phase=FlowPhase.POST_ITINERARY,
                messages=[chat.error(chat.describe_error(exc, "Failed to fetch guides.")), offer],
            )
        return _done(phase=FlowPhase.POST_ITINERARY, messages=[chat.guide_list(city_name, guides), offer])

    async def post_itinerary(self, state: PlannerState) -> Dict[str, Any]:
        # "Modify Preferences" resets the transcript, so ItineraryFlow handles it outside the graph
        choice = match_option(chat.POST_ITINERARY_OPTIONS, state.user_input or "")
        if choice == PostItineraryAction.GENERATE_NEW.value:
            return {"phase": FlowPhase.GENERATING, "next_action": "generate_itinerary"}
        return _done(messages=[chat.post_itinerary_offer(chat.ANSWERED_ALL_OFFER)])

    async def restart(self, state: PlannerState) -> Dict[str, Any]:
        if not state.cities:
            return {"next_action": "start"}

        if state.fixed_city:
            city = match_city(state.cities, state.fixed_city)
            if city is None:
                return {"next_action": "start"}
            return _choose_city(city)

        return _done(phase=FlowPhase.AWAITING_CITY, messages=[chat.city_prompt(state.cities)])

    async def request_credits(self, state: PlannerState) -> Dict[str, Any]:
        try:
            await self.api.request_credits()
        except ApiError as exc:
            return _done(
                credit_request=CreditRequestStatus.ERROR,
                credit_error=chat.describe_error(exc, "Failed to request credits."),
            )
        return _done(
            credit_request=CreditRequestStatus.SUCCESS,
            credit_error=None,
            error=None,
            error_kind=None,
            messages=[chat.bot(chat.CREDITS_REQUESTED)],
        )


def build_planner_graph(api: PlannerApi, ai_notice: Optional[bool] = None):
    nodes = PlannerNodes(api, ai_notice=ai_notice)
    graph = StateGraph(PlannerState)

    for name in NODES:
        graph.add_node(name, getattr(nodes, name))

    # Edges: START -> the node owning the event
    graph.add_conditional_edges(START, route_event, {**{n: n for n in EVENT_ROUTES.values()}, "end": END})

    # Each node names its successor through next_action
    path_map = {**{n: n for n in NODES}, "end": END}
    for name in NODES:
        graph.add_conditional_edges(name, follow_next_action, path_map)

    return graph.compile()
