from voice_onboarding.conversation.transcript import MessageLog

__all__ = ["MessageLog"]
