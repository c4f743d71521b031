"""
Transcript entries and the user-facing text the flow emits.
"""
from typing import Iterable, List, Optional

from models.planner import ChatMessage, City, ErrorKind, Guide, MessageType, Question, QuestionType, Sender
from models.state import PostItineraryAction
from services.api_client import ApiError

SELECT_CITY = "Please select a city to start planning your trip."
SELECT_VALID_CITY = "Please select a valid city."
NO_CITIES = "No cities are available. Please contact support."
NO_QUESTIONS = "No questions available. Generating a basic itinerary..."
MISSED_QUESTIONS = "It looks like you missed some questions. Let’s go back and answer them."
CREATING_ITINERARY = "Great! I'm creating your personalized itinerary..."
CREDITS_REQUESTED = "Credit request submitted successfully."

SESSION_EXPIRED = "Your session has expired. Please log in again."
INSUFFICIENT_CREDITS = "You do not have enough credits to generate an itinerary. Please request credits."
RATE_LIMITED = "Too many requests. Please try again later."
SERVER_ERROR = "Server error occurred."

GUIDE_PROMPT_OPTIONS = ["Yes", "No"]
POST_ITINERARY_OPTIONS = [PostItineraryAction.GENERATE_NEW.value, PostItineraryAction.MODIFY_PREFERENCES.value]

VIEWED_GUIDES_OFFER = (
    "You’ve viewed the guide list. Would you like to generate a new itinerary or modify your preferences?"
)
ANSWERED_ALL_OFFER = (
    "You’ve answered all questions. Would you like to generate a new itinerary or modify your preferences?"
)
RETRY_OFFER = "Would you like to try generating your itinerary again or modify your preferences?"

_KIND_MESSAGES = {
    ErrorKind.UNAUTHORIZED: SESSION_EXPIRED,
    ErrorKind.INSUFFICIENT_CREDITS: INSUFFICIENT_CREDITS,
    ErrorKind.RATE_LIMITED: RATE_LIMITED,
    ErrorKind.SERVER_ERROR: SERVER_ERROR,
}


def describe_error(exc: ApiError, fallback: str) -> str:
    """User-facing text for a failed call, keyed by its error kind."""
    return _KIND_MESSAGES.get(exc.kind) or exc.message or fallback


def bot(text: str, type: MessageType = MessageType.TEXT, options: Optional[List[str]] = None) -> ChatMessage:
    return ChatMessage(sender=Sender.BOT, text=text, type=type, options=list(options or []))


def user(text: str) -> ChatMessage:
    return ChatMessage(sender=Sender.USER, text=text)


def error(text: str) -> ChatMessage:
    return ChatMessage(sender=Sender.BOT, text=text, is_error=True)


def city_prompt(cities: Iterable[City], text: str = SELECT_CITY) -> ChatMessage:
    return bot(text, MessageType.OPTIONS, [c.city_name for c in cities])


def question_prompt(question: Question) -> ChatMessage:
    if question.kind in (QuestionType.COMMON, QuestionType.OPTIONS):
        return bot(question.question_text, MessageType.OPTIONS, question.choices)
    if question.kind == QuestionType.NUMBER:
        return bot(question.question_text, MessageType.NUMBER)
    if question.kind == QuestionType.DATE:
        return bot(question.question_text, MessageType.DATE)
    return bot(question.question_text)


def guide_prompt(city_name: str) -> ChatMessage:
    return bot(f"Would you like to see a list of guides for {city_name}?", MessageType.OPTIONS, GUIDE_PROMPT_OPTIONS)


def guide_list(city_name: str, guides: List[Guide]) -> ChatMessage:
    if not guides:
        return bot(f"No guides available for {city_name}.")
    return ChatMessage(
        sender=Sender.BOT,
        text=f"Here are the available guides for {city_name}:",
        type=MessageType.GUIDE_LIST,
        guides=guides,
    )


def post_itinerary_offer(text: str = ANSWERED_ALL_OFFER) -> ChatMessage:
    return bot(text, MessageType.OPTIONS, POST_ITINERARY_OPTIONS)
