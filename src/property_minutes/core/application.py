"""Headless application host for the minutes generator.

The presentation shell calls these operations; the host owns the single
configuration handle and makes sure only one generation runs at a time.
"""

import asyncio
import calendar
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..integrations.google_auth import CredentialProvider
from ..utils.exceptions import GenerationInProgress
from ..utils.logging_config import get_logger
from .config_manager import ConfigManager
from .models import FolderListing, MeetingRequest, MinutesResult
from .orchestrator import MinutesOrchestrator, WorkflowResult
from .service_factory import ServiceFactory


def subtract_months(value: date, months: int) -> date:
    """Same day ``months`` earlier, clamped to the end of a shorter month."""
    month_index = value.year * 12 + value.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def default_mail_window(meeting_date: date, retrieval_period: int) -> Tuple[date, date]:
    """Mail window ending with the meeting day, ``retrieval_period`` months long."""
    window_end = meeting_date + timedelta(days=1)
    return subtract_months(window_end, max(retrieval_period, 1)), window_end


class MinutesApplication:
    """Operations the presentation shell invokes.

    Attributes:
        config_manager: The configuration handle shared by every operation
        credential_provider: Google authorization for settings and browsing
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        service_factory_class: Callable[[ConfigManager], ServiceFactory] = ServiceFactory,
    ):
        self.logger = get_logger(__name__)
        self.config_manager = config_manager or ConfigManager()
        self.credential_provider = CredentialProvider(self.config_manager)
        self.service_factory_class = service_factory_class
        self._generation_lock = asyncio.Lock()
        self.progress_callback: Optional[Callable[[str, int], None]] = None

    # Settings

    def load_settings(self) -> Dict[str, Any]:
        """Settings for the form, without stored secrets."""
        return self.config_manager.to_dict(include_secrets=False)

    def save_settings(self, settings: Dict[str, Any]) -> None:
        """Overwrite the settings; the stored authorization is kept."""
        self.config_manager.save_all(settings)

    # Authorization

    def get_auth_url(self) -> str:
        return self.credential_provider.generate_auth_url()

    async def process_auth_code(self, code: str) -> None:
        await self.credential_provider.exchange_code(code)

    async def check_auth(self) -> bool:
        return await self.credential_provider.check_status()

    def clear_auth(self) -> None:
        self.credential_provider.clear_authentication()

    # Browsing

    async def list_labels(self) -> List[Dict[str, str]]:
        """User Gmail labels for the label picker."""
        factory = self.service_factory_class(self.config_manager)
        try:
            gmail_client = await factory.create_gmail_client()
            return await gmail_client.list_labels()
        finally:
            await factory.close_all()

    async def browse_folders(self, parent_id: Optional[str] = None) -> FolderListing:
        """Child folders and breadcrumb for the folder picker."""
        factory = self.service_factory_class(self.config_manager)
        try:
            drive_client = await factory.create_drive_client()
            return await drive_client.list_children(parent_id)
        finally:
            await factory.close_all()

    # Generation

    def set_progress_callback(self, callback: Callable[[str, int], None]) -> None:
        self.progress_callback = callback

    def default_request(
        self, meeting_date: date, participant_keys: Optional[List[str]] = None
    ) -> MeetingRequest:
        """Request prefilled from the configured defaults."""
        defaults = self.config_manager.get_config().defaults
        window_start, window_end = default_mail_window(
            meeting_date, defaults.retrieval_period
        )

        if participant_keys is None:
            participant_keys = list(self.config_manager.get_participant_names())

        return MeetingRequest(
            date=meeting_date,
            start_time=defaults.start_time,
            end_time=defaults.end_time,
            location=defaults.location,
            participant_keys=participant_keys,
            mail_window_start=window_start,
            mail_window_end=window_end,
        )

    def _create_orchestrator(self) -> MinutesOrchestrator:
        orchestrator = MinutesOrchestrator(
            self.config_manager, self.service_factory_class(self.config_manager)
        )
        if self.progress_callback:
            orchestrator.set_progress_callback(self.progress_callback)
        return orchestrator

    async def generate_minutes(self, request: MeetingRequest) -> MinutesResult:
        """Run one generation.

        Raises:
            GenerationInProgress: Another generation has not finished yet
        """
        if self._generation_lock.locked():
            raise GenerationInProgress("Minutes generation is already running")

        async with self._generation_lock:
            return await self._create_orchestrator().run(request)

    async def execute_generation(self, request: MeetingRequest) -> WorkflowResult:
        """Run one generation and report the outcome without raising."""
        if self._generation_lock.locked():
            error = GenerationInProgress("Minutes generation is already running")
            self.logger.warning(error.describe())
            return WorkflowResult.from_error(error)

        async with self._generation_lock:
            return await self._create_orchestrator().execute(request)
