"""
Entry point for the HTTP API and the LiveKit voice booking agent.

Usage:
    HTTP API:     python main.py api
    Live voice:   python main.py dev
    Console mode: python main.py console   (LiveKit's terminal session)
"""

import asyncio
import logging
import sys

from voice_onboarding.config import settings

logger = logging.getLogger(__name__)


def _build_session(owner_user_id: str):
    """Build a new AgentSession with the configured STT/LLM/TTS pipeline."""
    from livekit.agents import AgentSession
    from livekit.plugins import deepgram, elevenlabs, openai, silero

    from voice_onboarding.schemas.customer_schema import SessionData

    voice = settings.voice
    return AgentSession[SessionData](
        stt=deepgram.STT(model=voice.stt_model, language=voice.stt_language),
        llm=openai.LLM(model=voice.llm_model, temperature=voice.llm_temperature),
        tts=elevenlabs.TTS(voice_id=voice.tts_voice_id, model=voice.tts_model),
        vad=silero.VAD.load(),
        userdata=SessionData(owner_user_id=owner_user_id),
    )


def _attach_log(session, log) -> None:
    """Mirror session events into the message log."""

    @session.on("conversation_item_added")
    def _on_item(event) -> None:
        text = event.item.text_content
        if text:
            log.on_message(event.item.role, text, raw=event.item)

    @session.on("error")
    def _on_error(event) -> None:
        log.on_error(event.error)

    @session.on("close")
    def _on_close(event) -> None:
        log.on_disconnect()
        logger.info("Session closed with %d logged messages", len(log))


async def entrypoint(ctx) -> None:
    """LiveKit agent entrypoint. Must be module-level for Windows pickling."""
    from voice_onboarding.agents.booking_agent import BookingAgent
    from voice_onboarding.conversation.transcript import MessageLog
    from voice_onboarding.errors import NotFoundError
    from voice_onboarding.integrations.business_data import load_business_data
    from voice_onboarding.logging_context import set_request_id
    from voice_onboarding.services.container import build_services

    set_request_id(ctx.room.name)
    owner = settings.voice.owner_user_id
    if not owner:
        raise RuntimeError("BOOKING_OWNER_USER_ID must be set to run the voice agent")

    services = build_services(settings)
    try:
        business = await asyncio.to_thread(load_business_data, services.store, owner)
    except NotFoundError:
        logger.warning("No business data synced for %s; starting with a generic prompt", owner)
        business = None

    await ctx.connect()
    log = MessageLog()
    log.on_connect()
    session = _build_session(owner)
    _attach_log(session, log)
    agent = BookingAgent(
        services.bookings, log, business=business, search_days=settings.voice.search_days
    )
    await session.start(room=ctx.room, agent=agent)
    logger.info("Voice agent session started in room: %s", ctx.room.name)


def _run_voice_mode() -> None:
    """Start the LiveKit worker (dev, start and console subcommands)."""
    from livekit.agents import WorkerOptions, cli

    worker = WorkerOptions(
        entrypoint_fnc=entrypoint,
        agent_name=settings.agent_name,
    )
    cli.run_app(worker)


def _run_api() -> None:
    """Serve the FastAPI app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "voice_onboarding.api.app:app",
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "api":
        _run_api()
    else:
        _run_voice_mode()
