"""Participant key to profile lookup.

Each configured participant slot maps to a fixed role and to the knowledge
level and writing style the draft should assume. Adding a participant kind is
an edit to ``PROFILE_TABLE``.
"""

from enum import Enum
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional

from .models import KnowledgeLevel, ParticipantProfile, ParticipantStyle


class ParticipantKind(Enum):
    PRESIDENT = "president"
    WIFE = "wife"
    CHAIRMAN = "chairman"
    MOTHER = "mother"
    SISTER = "sister"
    UNKNOWN = "unknown"

    @classmethod
    def from_key(cls, key: str) -> "ParticipantKind":
        try:
            kind = cls(key)
        except ValueError:
            return cls.UNKNOWN
        return kind


class RoleProfile(NamedTuple):
    role: str
    knowledge_level: KnowledgeLevel
    style: ParticipantStyle


PROFILE_TABLE: Dict[ParticipantKind, RoleProfile] = {
    ParticipantKind.PRESIDENT: RoleProfile(
        "代表取締役社長", KnowledgeLevel.HIGH, ParticipantStyle.PROFESSIONAL
    ),
    ParticipantKind.WIFE: RoleProfile(
        "取締役", KnowledgeLevel.BEGINNER, ParticipantStyle.CASUAL
    ),
    ParticipantKind.CHAIRMAN: RoleProfile(
        "取締役会長", KnowledgeLevel.HIGH, ParticipantStyle.SENIOR_CASUAL
    ),
    ParticipantKind.MOTHER: RoleProfile(
        "監査役", KnowledgeLevel.BEGINNER, ParticipantStyle.VERY_CASUAL
    ),
    ParticipantKind.SISTER: RoleProfile(
        "取締役", KnowledgeLevel.BEGINNER, ParticipantStyle.CASUAL
    ),
    ParticipantKind.UNKNOWN: RoleProfile(
        "参加者", KnowledgeLevel.BEGINNER, ParticipantStyle.CASUAL
    ),
}


def resolve_participant(key: str, display_name: Optional[str] = None) -> ParticipantProfile:
    """Build the profile for one participant key. Unknown keys never raise."""
    entry = PROFILE_TABLE[ParticipantKind.from_key(key)]
    return ParticipantProfile(
        name=display_name or key,
        role=entry.role,
        knowledge_level=entry.knowledge_level,
        style=entry.style,
    )


def resolve_participants(
    keys: Iterable[str], names: Mapping[str, str]
) -> List[ParticipantProfile]:
    """Map participant keys to profiles, taking display names from ``names``."""
    return [resolve_participant(key, names.get(key)) for key in keys]
