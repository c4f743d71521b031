from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()


class Settings(BaseModel):
    env: str = os.getenv("ENV", "dev")
    api_url: str = os.getenv("PLANNER_API_URL", "http://localhost:5000")
    # guide search historically lived on a separate host
    guides_api_url: str = os.getenv("PLANNER_GUIDES_API_URL", "")
    api_token: str = os.getenv("PLANNER_API_TOKEN", "")
    request_timeout: float = float(os.getenv("PLANNER_REQUEST_TIMEOUT", "10"))
    itinerary_ai_notice: bool = os.getenv("PLANNER_ITINERARY_AI_NOTICE", "false").lower() in ("1", "true", "yes")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
