from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel

from agents.planner.graph import ItineraryFlow, PlannerFlowError, create_flow
from services.log import setup_logging
from services.session_store import SessionStore, session_store

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await session_store.clear()


app = FastAPI(title="Guide Planner API", version="0.1.0", lifespan=lifespan)

FlowFactory = Callable[[Optional[str], Optional[str]], ItineraryFlow]


def get_session_store() -> SessionStore:
    return session_store


def get_flow_factory() -> FlowFactory:
    return lambda token, city: create_flow(token, city=city)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(401, "Missing bearer token")
    return authorization.split(" ", 1)[1].strip()


def _lookup(store: SessionStore, session_id: str) -> ItineraryFlow:
    flow = store.get(session_id)
    if flow is None:
        raise HTTPException(404, "Session not found")
    return flow


def _snapshot(session_id: str, flow: ItineraryFlow) -> Dict[str, Any]:
    return {"session_id": session_id, "state": flow.snapshot()}


class SessionCreate(BaseModel):
    city: Optional[str] = None  # preset city skips the city prompt


class MessageIn(BaseModel):
    message: str


class ActionIn(BaseModel):
    action: str  # "Generate New Itinerary" | "Modify Preferences"


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/sessions", status_code=201)
async def create_session(
    req: SessionCreate,
    authorization: Optional[str] = Header(None),
    store: SessionStore = Depends(get_session_store),
    factory: FlowFactory = Depends(get_flow_factory),
):
    token = bearer_token(authorization)
    flow = factory(token, req.city)
    session_id = store.add(flow)
    await flow.start()
    return _snapshot(session_id, flow)


@app.get("/sessions/{session_id}")
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    return _snapshot(session_id, _lookup(store, session_id))


@app.post("/sessions/{session_id}/messages")
async def send_message(session_id: str, req: MessageIn, store: SessionStore = Depends(get_session_store)):
    flow = _lookup(store, session_id)
    await flow.send(req.message)
    return _snapshot(session_id, flow)


@app.post("/sessions/{session_id}/actions")
async def post_itinerary_action(session_id: str, req: ActionIn, store: SessionStore = Depends(get_session_store)):
    flow = _lookup(store, session_id)
    try:
        await flow.choose(req.action)
    except PlannerFlowError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _snapshot(session_id, flow)


@app.post("/sessions/{session_id}/credits")
async def request_credits(session_id: str, store: SessionStore = Depends(get_session_store)):
    flow = _lookup(store, session_id)
    try:
        await flow.request_credits()
    except PlannerFlowError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _snapshot(session_id, flow)


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    if not await store.remove(session_id):
        raise HTTPException(404, "Session not found")
    return {"ok": True, "session_id": session_id}
