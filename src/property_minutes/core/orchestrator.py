"""Workflow orchestrator for property meeting minutes generation."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Callable, List, Optional

from ..utils.exceptions import (
    ConfigurationError,
    FormattingFailed,
    GoogleDriveIntegrationError,
    MinutesError,
    NoMailFound,
)
from ..utils.logging_config import get_logger, get_security_logger
from ..utils.validators import InputValidator
from .config_manager import ConfigManager
from .models import (
    FolderNode,
    Location,
    MailMessage,
    MeetingContext,
    MeetingRequest,
    MinutesResult,
)
from .participants import resolve_participants
from .service_factory import ServiceFactory

TITLE_PREFIX = "物件検討会議_議事録_"
MAX_MAIL_RESULTS = 50

# Names the folder picker uses for the Drive root
MY_DRIVE_NAMES = ("マイドライブ", "My Drive")


class PipelineState(Enum):
    """Where a pipeline run currently is."""

    IDLE = "idle"
    FETCHING_MAIL = "fetching_mail"
    DRAFTING = "drafting"
    PUBLISHING = "publishing"
    FILING = "filing"
    DONE = "done"
    FAILED = "failed"


class WorkflowStatus(Enum):
    """Workflow execution status."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class WorkflowResult:
    """Host-facing outcome of a run: a result or an error kind and message."""

    status: WorkflowStatus
    result: Optional[MinutesResult] = None
    execution_time: float = 0.0
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    stages_completed: List[str] = field(default_factory=list)

    @classmethod
    def from_error(cls, error: Exception, execution_time: float = 0.0) -> "WorkflowResult":
        if isinstance(error, MinutesError):
            error_kind, error_message = error.kind, error.message
        else:
            error_kind, error_message = type(error).__name__, str(error)

        return cls(
            status=WorkflowStatus.FAILED,
            execution_time=execution_time,
            error_kind=error_kind,
            error_message=error_message,
        )

    @property
    def error_text(self) -> Optional[str]:
        if self.status is not WorkflowStatus.FAILED:
            return None
        return f"{self.error_kind}: {self.error_message}"


def build_title(meeting_date: date) -> str:
    """Document title, date without zero padding."""
    return f"{TITLE_PREFIX}{meeting_date.year}-{meeting_date.month}-{meeting_date.day}"


def destination_path(folder_path: str) -> str:
    """Configured folder path relative to the Drive root."""
    segments = InputValidator.normalize_folder_path(folder_path)
    if segments and segments[0] in MY_DRIVE_NAMES:
        segments = segments[1:]
    return "/".join(segments)


def validate_request(request: MeetingRequest) -> None:
    """Structural checks that must pass before any network call.

    Raises:
        InvalidRequest: A field is missing, malformed or out of order
    """
    InputValidator.validate_date(request.date, "date")
    InputValidator.validate_time(request.start_time, "start_time")
    InputValidator.validate_time(request.end_time, "end_time")
    InputValidator.validate_time_range(request.start_time, request.end_time)
    InputValidator.validate_date(request.mail_window_start, "mail_window_start")
    InputValidator.validate_date(request.mail_window_end, "mail_window_end")
    InputValidator.validate_date_window(request.mail_window_start, request.mail_window_end)
    InputValidator.validate_enum(request.location, Location, "location")
    InputValidator.validate_non_empty(request.participant_keys, "participant_keys")


class MinutesOrchestrator:
    """Runs the minutes pipeline: mail, draft, document, folder.

    Every failure before the document exists aborts the run with its typed
    error. Once the document exists, formatting and filing failures are kept
    as warnings on the result instead.

    Attributes:
        config_manager: Configuration handle read at the start of every run
        service_factory: Factory for creating service clients
        state: Current pipeline state
        progress_callback: Optional callback for progress updates
        stages: List of workflow stage names

    Example:
        ```python
        orchestrator = MinutesOrchestrator(config_manager)
        orchestrator.set_progress_callback(update_ui)

        result = await orchestrator.run(request)
        print(result.document.url)
        ```
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        service_factory: Optional[ServiceFactory] = None,
    ) -> None:
        self.config_manager = config_manager
        self.logger = get_logger(__name__)
        self.security_logger = get_security_logger()

        self.service_factory = service_factory or ServiceFactory(config_manager)

        self.state = PipelineState.IDLE
        self.progress_callback: Optional[Callable[[str, int], None]] = None

        self.stages = [
            "validate_request",
            "fetch_mail",
            "draft_minutes",
            "publish_document",
            "file_document",
        ]
        self.current_stage = 0

    def set_progress_callback(self, callback: Callable[[str, int], None]) -> None:
        """Set callback for progress updates.

        Args:
            callback: Function that accepts message (str) and percentage (int)
        """
        self.progress_callback = callback

    def _update_progress(self, message: str, percentage: Optional[int] = None) -> None:
        if self.progress_callback:
            if percentage is None:
                percentage = int((self.current_stage / len(self.stages)) * 100)
            self.progress_callback(message, percentage)

    async def run(self, request: MeetingRequest) -> MinutesResult:
        """Produce, format and file the minutes document for ``request``.

        Raises:
            InvalidRequest: The request failed structural validation
            ConfigurationError: The company name, Gmail label or Gemini key is missing
            NoMailFound: No mail matched the window and label
            MinutesError: Any other failure before the document existed
        """
        started = datetime.now()
        stages_completed: List[str] = []
        self.state = PipelineState.IDLE

        try:
            self.logger.info("Starting minutes generation")
            self.security_logger.log_security_event(
                "workflow_started",
                meeting_date=str(request.date),
                participants_count=len(request.participant_keys or []),
            )

            context = await self._execute_stage("validate_request", stages_completed, request)

            self.state = PipelineState.FETCHING_MAIL
            messages = await self._execute_stage("fetch_mail", stages_completed, request)

            self.state = PipelineState.DRAFTING
            text = await self._execute_stage(
                "draft_minutes", stages_completed, messages, context
            )

            self.state = PipelineState.PUBLISHING
            title = build_title(request.date)
            result = await self._execute_stage(
                "publish_document", stages_completed, title, text, context.company_name
            )
            result.mail_count = len(messages)

            self.state = PipelineState.FILING
            await self._execute_stage("file_document", stages_completed, result, request.date)

            self.state = PipelineState.DONE
            result.stages_completed = stages_completed
            result.execution_time = (datetime.now() - started).total_seconds()
            self._update_progress("Minutes published", 100)

            self.logger.info(
                f"Minutes published in {result.execution_time:.2f}s: {result.document.url}"
            )
            self.security_logger.log_security_event(
                "workflow_completed",
                execution_time=result.execution_time,
                mail_count=result.mail_count,
                warnings=len(result.warnings),
            )

            return result

        except Exception as e:
            self.state = PipelineState.FAILED
            self.security_logger.log_security_event(
                "workflow_failed",
                error_type=type(e).__name__,
                error_message=str(e),
                execution_time=(datetime.now() - started).total_seconds(),
            )
            raise

        finally:
            await self._cleanup_clients()

    async def execute(self, request: MeetingRequest) -> WorkflowResult:
        """Run the pipeline and report the outcome without raising."""
        started = datetime.now()

        try:
            minutes = await self.run(request)
            return WorkflowResult(
                status=WorkflowStatus.COMPLETED,
                result=minutes,
                execution_time=minutes.execution_time,
                stages_completed=list(minutes.stages_completed),
            )

        except Exception as e:
            failure = WorkflowResult.from_error(
                e, execution_time=(datetime.now() - started).total_seconds()
            )

        self.logger.error(f"Minutes generation failed: {failure.error_text}")
        return failure

    async def _execute_stage(self, stage_name: str, stages_completed: List[str], *args):
        """Execute a specific workflow stage.

        Typed errors propagate unchanged; anything else is wrapped so the host
        always sees a ``MinutesError``.
        """
        self.current_stage = self.stages.index(stage_name)
        stage_number = self.current_stage + 1

        self.logger.info(f"Executing stage {stage_number}: {stage_name}")

        try:
            method = getattr(self, f"_stage_{stage_name}")
            stage_result = await method(*args)

        except MinutesError as e:
            self.logger.error(f"Stage {stage_number} failed: {stage_name} - {e.describe()}")
            raise
        except Exception as e:
            self.logger.error(f"Stage {stage_number} failed: {stage_name} - {e}")
            raise MinutesError(f"Stage {stage_name} failed: {e}")

        stages_completed.append(stage_name)
        self.logger.info(f"Stage {stage_number} completed: {stage_name}")
        return stage_result

    async def _stage_validate_request(self, request: MeetingRequest) -> MeetingContext:
        """Stage 1: Validate the request and build the meeting context."""
        self._update_progress("Validating request...")

        validate_request(request)

        # Settings saved by the host since the last run apply to this one
        config = self.config_manager.reload()

        company_name = config.company.name.strip()
        if not company_name:
            raise ConfigurationError("Company name is not configured")

        if not config.google.gmail_label.strip():
            raise ConfigurationError("Gmail label for property mail is not configured")

        participants = resolve_participants(
            request.participant_keys, self.config_manager.get_participant_names()
        )

        return MeetingContext(
            date=request.date,
            start_time=request.start_time,
            end_time=request.end_time,
            location=InputValidator.validate_enum(request.location, Location, "location"),
            participants=participants,
            company_name=company_name,
        )

    async def _stage_fetch_mail(self, request: MeetingRequest) -> List[MailMessage]:
        """Stage 2: Search the property mail in the window."""
        self._update_progress("Fetching property mail...")

        label = self.config_manager.get_config().google.gmail_label.strip()

        gmail_client = await self.service_factory.create_gmail_client()
        messages = await gmail_client.search(
            request.mail_window_start,
            request.mail_window_end,
            label=label,
            max_results=MAX_MAIL_RESULTS,
        )

        if not messages:
            raise NoMailFound(
                f"No mail found between {request.mail_window_start.isoformat()} and "
                f'{request.mail_window_end.isoformat()} with label "{label}"',
                {"label": label},
            )

        self.logger.info(f"Retrieved {len(messages)} mails")
        return messages

    async def _stage_draft_minutes(
        self, messages: List[MailMessage], context: MeetingContext
    ) -> str:
        """Stage 3: Draft the minutes text."""
        self._update_progress("Drafting minutes...")

        gemini_client = await self.service_factory.create_gemini_client()
        return await gemini_client.generate_minutes(messages, context)

    async def _stage_publish_document(
        self, title: str, text: str, company_name: str
    ) -> MinutesResult:
        """Stage 4: Create and format the document."""
        self._update_progress("Creating document...")

        docs_client = await self.service_factory.create_docs_client()

        try:
            document = await docs_client.create_minutes(title, text, company_name)
            return MinutesResult(document=document)

        except FormattingFailed as e:
            # The document exists; keep it and report the formatting failure
            self.logger.warning(f"Document published without formatting: {e.message}")
            result = MinutesResult(document=e.document)
            result.add_warning(e.kind, e.message)
            return result

    async def _stage_file_document(self, result: MinutesResult, meeting_date: date) -> None:
        """Stage 5: Move the document into its destination folder."""
        self._update_progress("Filing document...")

        google_config = self.config_manager.get_config().google
        folder_path = destination_path(google_config.drive_folder_path)
        if not google_config.drive_folder_id and not folder_path:
            self.logger.info("No destination folder configured, document left in Drive root")
            return

        try:
            drive_client = await self.service_factory.create_drive_client()
            folder = await self._resolve_destination(drive_client, meeting_date)
            await drive_client.move_and_rename(
                result.document.id, folder.id, result.document.title
            )
            result.folder = folder

        except GoogleDriveIntegrationError as e:
            self.logger.warning(f"Document published but not filed: {e.message}")
            result.add_warning(e.kind, e.message)

    async def _resolve_destination(self, drive_client, meeting_date: date) -> FolderNode:
        google_config = self.config_manager.get_config().google

        if google_config.drive_folder_id:
            folder = await drive_client.get_folder(google_config.drive_folder_id)
        else:
            folder = await drive_client.ensure_folder_path(
                destination_path(google_config.drive_folder_path)
            )

        if google_config.organize_by_month:
            folder = await drive_client.ensure_folder_path(
                f"{meeting_date.year:04d}/{meeting_date.month:02d}", parent_id=folder.id
            )

        return folder

    async def _cleanup_clients(self) -> None:
        """Clean up API clients using factory."""
        try:
            await self.service_factory.close_all()
        except Exception as e:
            self.logger.error(f"Error during client cleanup: {e}")
