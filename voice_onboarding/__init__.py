"""Square onboarding backend and voice booking agent."""

__version__ = "0.1.0"
