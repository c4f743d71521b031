"""
Itinerary text formatting for the transcript
"""
import re

from models.planner import TravelPlan

LIMITED_INPUT_DISCLAIMER = (
    "Note: This itinerary is based on limited preferences. "
    "For a more tailored plan, please provide additional details."
)

_BOLD = re.compile(r"\*\*(.*?)\*\*", re.DOTALL)


def strip_markdown_bold(text: str) -> str:
    return _BOLD.sub(r"\1", text)


def plan_id_line(plan_id: str) -> str:
    return f"Your travel plan ID is: {plan_id}. Save this ID to retrieve your plan later."


def ai_notice(city_name: str) -> str:
    return f"This itinerary was generated by AI to help you plan your trip to {city_name}."


def format_itinerary(
    plan: TravelPlan,
    city_name: str,
    minimal_input: bool = False,
    with_ai_notice: bool = False,
) -> str:
    """Render the generated plan: notice, body, disclaimer, then the plan id."""
    parts = []
    if with_ai_notice:
        parts.append(ai_notice(city_name))
    parts.append(strip_markdown_bold(plan.itinerary))
    if minimal_input:
        parts.append(LIMITED_INPUT_DISCLAIMER)
    parts.append(plan_id_line(plan.plan_id))
    return "\n\n".join(parts)
