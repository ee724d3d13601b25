"""Records passed between the minutes pipeline stages."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple

from ..utils.exceptions import InvalidRequest


class Location(Enum):
    """Where the meeting takes place."""

    TOKYO = "tokyo"
    NAGANO = "nagano"
    ONLINE = "online"

    @property
    def label(self) -> str:
        return LOCATION_LABELS[self]


LOCATION_LABELS = {
    Location.TOKYO: "東京事務所",
    Location.NAGANO: "長野事務所",
    Location.ONLINE: "オンライン",
}


class KnowledgeLevel(Enum):
    HIGH = "high"
    BEGINNER = "beginner"


class ParticipantStyle(Enum):
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    SENIOR_CASUAL = "senior_casual"
    VERY_CASUAL = "very_casual"


@dataclass(frozen=True)
class ParticipantProfile:
    """A meeting attendee with the profile the model writes for."""

    name: str
    role: str
    knowledge_level: KnowledgeLevel
    style: ParticipantStyle


@dataclass
class MeetingRequest:
    """What the presentation shell asks the pipeline to produce.

    Attributes:
        date: Meeting date
        start_time: Start time as ``HH:MM``
        end_time: End time as ``HH:MM``
        location: Meeting location
        participant_keys: Participant keys in display order, duplicates dropped
        mail_window_start: First day of the mail search window
        mail_window_end: Day the mail search window stops before
    """

    date: date
    start_time: str
    end_time: str
    location: Location
    participant_keys: List[str]
    mail_window_start: date
    mail_window_end: date

    def __post_init__(self):
        if isinstance(self.location, str):
            try:
                self.location = Location(self.location)
            except ValueError:
                raise InvalidRequest(
                    f"Unknown location: {self.location!r}", {"field": "location"}
                )
        if self.participant_keys:
            self.participant_keys = list(dict.fromkeys(self.participant_keys))


@dataclass(frozen=True)
class MailMessage:
    """A retrieved mail flattened to plain text."""

    id: str
    subject: str
    sender: str
    date: datetime
    body_text: str


@dataclass
class MeetingContext:
    """Meeting metadata rendered into the drafting prompt."""

    date: date
    start_time: str
    end_time: str
    location: Location
    participants: List[ParticipantProfile]
    company_name: str


@dataclass(frozen=True)
class PublishedDocument:
    id: str
    url: str
    title: str


@dataclass(frozen=True)
class FolderNode:
    id: str
    name: str
    parent_id: Optional[str] = None


@dataclass
class FolderListing:
    """Children of a folder plus the root-to-folder breadcrumb."""

    children: List[FolderNode]
    breadcrumb: List[FolderNode] = field(default_factory=list)
    current: Optional[FolderNode] = None


class PublishStatus(Enum):
    PUBLISHED = "published"
    PUBLISHED_WITH_WARNINGS = "published_with_warnings"


@dataclass
class MinutesResult:
    """Outcome of a successful pipeline run.

    ``warnings`` holds ``(kind, message)`` pairs for steps that failed after
    the document had already been created.
    """

    document: PublishedDocument
    status: PublishStatus = PublishStatus.PUBLISHED
    warnings: List[Tuple[str, str]] = field(default_factory=list)
    folder: Optional[FolderNode] = None
    mail_count: int = 0
    execution_time: float = 0.0
    stages_completed: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    def add_warning(self, kind: str, message: str) -> None:
        self.warnings.append((kind, message))
        self.status = PublishStatus.PUBLISHED_WITH_WARNINGS
