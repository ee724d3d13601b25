"""Unit tests for the application host."""

import asyncio
from datetime import date
from unittest.mock import patch

import pytest

from fakes import FakeDriveService, FakeGmailService
from property_minutes.core.application import (
    MinutesApplication,
    default_mail_window,
    subtract_months,
)
from property_minutes.core.models import Location
from property_minutes.core.orchestrator import MinutesOrchestrator, WorkflowStatus
from property_minutes.integrations.gmail_client import GmailClient
from property_minutes.integrations.google_drive_client import GoogleDriveClient
from property_minutes.utils.exceptions import GenerationInProgress


@pytest.fixture
def app(config_manager, mock_service_factory):
    return MinutesApplication(config_manager, lambda config: mock_service_factory)


class TestMailWindow:
    """Test suite for the default mail window."""

    def test_subtract_months(self):
        assert subtract_months(date(2024, 5, 10), 1) == date(2024, 4, 10)
        assert subtract_months(date(2024, 1, 15), 2) == date(2023, 11, 15)
        # Clamped to the shorter month
        assert subtract_months(date(2024, 3, 31), 1) == date(2024, 2, 29)

    def test_window_includes_meeting_day(self):
        assert default_mail_window(date(2024, 5, 10), 1) == (date(2024, 4, 11), date(2024, 5, 11))
        assert default_mail_window(date(2024, 5, 10), 3) == (date(2024, 2, 11), date(2024, 5, 11))

    def test_period_below_one_uses_one_month(self):
        assert default_mail_window(date(2024, 5, 10), 0) == default_mail_window(date(2024, 5, 10), 1)


class TestSettings:
    """Test suite for the settings operations."""

    def test_load_settings_hides_secrets(self, app, config_manager):
        config_manager.set_refresh_token("secret-token")

        settings = app.load_settings()

        assert "refresh_token" not in settings["google"]
        assert settings["company"]["name"] == "株式会社〇〇〇〇"

    def test_save_settings_keeps_authorization(self, app, config_manager):
        config_manager.set_refresh_token("secret-token")
        settings = app.load_settings()
        settings["defaults"]["location"] = "online"

        app.save_settings(settings)

        assert config_manager.get_config().defaults.location == "online"
        assert config_manager.get_refresh_token() == "secret-token"

    def test_settings_round_trip_keeps_gemini_key(self, app, config_manager):
        config_manager.set_gemini_api_key("AIzaSECRETKEY")

        app.save_settings(app.load_settings())

        assert config_manager.get_gemini_api_key() == "AIzaSECRETKEY"

    def test_clear_auth(self, app, config_manager):
        config_manager.set_refresh_token("secret-token")

        app.clear_auth()

        assert config_manager.get_refresh_token() is None


class TestBrowsing:
    """Test suite for label and folder browsing."""

    @pytest.mark.asyncio
    async def test_list_labels(self, app, mock_service_factory):
        service = FakeGmailService(labels=[{"id": "L1", "name": "物件情報", "type": "user"}])
        mock_service_factory.create_gmail_client.return_value = GmailClient(service=service)

        labels = await app.list_labels()

        assert labels == [{"id": "L1", "name": "物件情報"}]
        mock_service_factory.close_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_browse_folders(self, app, mock_service_factory):
        drive_service = FakeDriveService()
        parent = drive_service.add_file("定例会")
        drive_service.add_file("2024", parent_id=parent)
        mock_service_factory.create_drive_client.return_value = GoogleDriveClient(service=drive_service)

        listing = await app.browse_folders(parent)

        assert [f.name for f in listing.children] == ["2024"]
        assert [f.name for f in listing.breadcrumb] == ["定例会"]
        mock_service_factory.close_all.assert_awaited_once()


class TestGeneration:
    """Test suite for generation requests."""

    def test_default_request(self, app, config_manager):
        config_manager.update_section("defaults", location="nagano", retrieval_period=2)

        request = app.default_request(date(2024, 5, 10))

        assert request.location is Location.NAGANO
        assert request.start_time == "14:00"
        assert request.participant_keys == ["president", "wife", "chairman", "mother", "sister"]
        assert request.mail_window_start == date(2024, 3, 11)
        assert request.mail_window_end == date(2024, 5, 11)

    def test_default_request_with_participants(self, app):
        request = app.default_request(date(2024, 5, 10), ["wife", "wife", "president"])

        assert request.participant_keys == ["wife", "president"]

    @pytest.mark.asyncio
    async def test_one_generation_at_a_time(self, config_manager, mock_service_factory, meeting_request):
        app = MinutesApplication(config_manager, lambda config: mock_service_factory)
        started = asyncio.Event()
        release = asyncio.Event()

        async def blocking_run(orchestrator, request):
            started.set()
            await release.wait()
            return "minutes"

        with patch.object(MinutesOrchestrator, "run", blocking_run):
            first = asyncio.create_task(app.generate_minutes(meeting_request))
            await started.wait()

            with pytest.raises(GenerationInProgress):
                await app.generate_minutes(meeting_request)

            outcome = await app.execute_generation(meeting_request)
            assert outcome.status is WorkflowStatus.FAILED
            assert outcome.error_kind == "GenerationInProgress"

            release.set()
            assert await first == "minutes"

            # The gate opens again once the run finishes
            assert await app.generate_minutes(meeting_request) == "minutes"

    @pytest.mark.asyncio
    async def test_progress_callback_is_forwarded(self, config_manager, mock_service_factory, meeting_request):
        app = MinutesApplication(config_manager, lambda config: mock_service_factory)
        progress = []
        app.set_progress_callback(lambda message, percentage: progress.append(percentage))
        meeting_request.mail_window_start = date(2024, 6, 1)

        outcome = await app.execute_generation(meeting_request)

        assert outcome.error_kind == "InvalidRequest"
        assert progress == [0]
