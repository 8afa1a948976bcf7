from voice_onboarding.agents.booking_agent import BookingAgent

__all__ = ["BookingAgent"]
