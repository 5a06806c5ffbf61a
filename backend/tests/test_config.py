"""Tests for settings validation."""

import pydantic
import pytest

from app.core.config import Settings, settings


class TestMetricsTimezone:
    """METRICS_TIMEZONE must name a real IANA zone."""

    def test_accepts_known_zone(self):
        configured = Settings(DATABASE_URL="sqlite+aiosqlite://", METRICS_TIMEZONE="Asia/Tokyo")
        assert configured.METRICS_TIMEZONE == "Asia/Tokyo"

    @pytest.mark.parametrize("zone", ["Mars/Olympus", "", "Not a zone"])
    def test_rejects_unknown_zone_at_startup(self, zone):
        with pytest.raises(pydantic.ValidationError, match="Unknown IANA timezone"):
            Settings(DATABASE_URL="sqlite+aiosqlite://", METRICS_TIMEZONE=zone)

    def test_rejects_unknown_zone_on_assignment(self):
        with pytest.raises(pydantic.ValidationError):
            settings.METRICS_TIMEZONE = "Mars/Olympus"
        assert settings.METRICS_TIMEZONE == "UTC"
