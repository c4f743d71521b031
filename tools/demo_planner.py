import asyncio
import sys

from agents.planner.graph import ItineraryFlow, PlannerFlowError, create_flow
from app.settings import settings
from models.planner import MessageType
from services.log import setup_logging


def _print_new(flow: ItineraryFlow, seen: int) -> int:
    if seen > len(flow.state.messages):
        # transcript was reset
        seen = 0
    for msg in flow.state.messages[seen:]:
        if msg.sender.value == "user":
            continue
        prefix = "[error] " if msg.is_error else ""
        print(f"\n{prefix}{msg.text}")
        if msg.type == MessageType.GUIDE_LIST:
            for g in msg.guides:
                langs = ", ".join(g.languages) or "-"
                print(f"  - {g.name or '(unnamed)'} [{langs}] {g.bio}")
        if msg.options:
            print("  options: " + " | ".join(msg.options))
    return len(flow.state.messages)


async def main() -> None:
    setup_logging("WARNING")
    city = sys.argv[1] if len(sys.argv) > 1 else None
    flow = create_flow(settings.api_token, city=city)

    await flow.start()
    seen = _print_new(flow, 0)

    try:
        while True:
            if flow.credit_request_available:
                print("  (type /credits to request more credits)")
            text = input("\n> ").strip()
            if text in ("/quit", "/exit"):
                break
            if text == "/credits":
                try:
                    await flow.request_credits()
                except PlannerFlowError as exc:
                    print(f"  {exc}")
                    continue
                if flow.state.credit_error:
                    print(f"[error] {flow.state.credit_error}")
            else:
                await flow.send(text)
            seen = _print_new(flow, seen)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        await flow.dispose()


if __name__ == "__main__":
    asyncio.run(main())
