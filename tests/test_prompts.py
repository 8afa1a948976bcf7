"""Tests for the booking agent's business context."""

from voice_onboarding.prompts.system_prompts import build_booking_prompt, build_business_context
from voice_onboarding.schemas.business_schema import BusinessData, Location


def _business(timezone=None) -> BusinessData:
    location = Location(id="L1", name="Main Salon", timezone=timezone)
    return BusinessData(primary_location=location, locations=[location])


class TestBusinessContext:
    def test_includes_location_timezone(self):
        context = build_business_context(_business("America/Chicago"))
        assert "Local timezone: America/Chicago." in context
        assert "Tool times are UTC" in context

    def test_no_timezone_line_without_timezone(self):
        assert "timezone" not in build_business_context(_business()).split("\n\n")[0].lower()

    def test_timezone_reaches_full_prompt(self):
        assert "America/Chicago" in build_booking_prompt(_business("America/Chicago"))

    def test_unknown_business(self):
        assert build_business_context(None) == "You are the booking assistant for a local business.\n"
