import operator
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

from models.planner import Answer, ChatMessage, City, ErrorKind, Question, TravelPlan


class FlowPhase(str, Enum):
    INIT = "init"                          # loading the city catalog
    AWAITING_CITY = "awaiting_city"
    LOADING_QUESTIONS = "loading_questions"
    AWAITING_ANSWER = "awaiting_answer"    # questions[step] is on screen
    GENERATING = "generating"
    OFFER_GUIDE_LIST = "offer_guide_list"  # yes/no on showing guides
    POST_ITINERARY = "post_itinerary"      # generate new itinerary / modify preferences


class FlowEvent(str, Enum):
    MOUNT = "mount"
    MESSAGE = "message"
    GENERATE = "generate"
    RESTART = "restart"
    REQUEST_CREDITS = "request_credits"


class PostItineraryAction(str, Enum):
    GENERATE_NEW = "Generate New Itinerary"
    MODIFY_PREFERENCES = "Modify Preferences"


class CreditRequestStatus(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCESS = "success"
    ERROR = "error"


class PlannerState(BaseModel):
    # Session setup
    phase: FlowPhase = FlowPhase.INIT
    fixed_city: Optional[str] = None       # city given at construction, bypasses the city prompt
    selected_city: Optional[str] = None

    # Backend data
    cities: List[City] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)  # active only, ascending order

    # Progress
    step: int = 0
    answers: List[Answer] = Field(default_factory=list)
    messages: Annotated[List[ChatMessage], operator.add] = Field(default_factory=list)  # append-only transcript
    plan: Optional[TravelPlan] = None

    # Errors and the credit request affordance
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    credit_request: CreditRequestStatus = CreditRequestStatus.IDLE
    credit_error: Optional[str] = None

    # Per-turn routing
    event: Optional[FlowEvent] = None
    user_input: Optional[str] = None
    next_action: Optional[str] = None  # internal routing hint between graph nodes
