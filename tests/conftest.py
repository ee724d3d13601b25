"""Pytest configuration and fixtures for the property minutes tests."""

import tempfile
from datetime import date
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from fakes import FakeDocsService, FakeDriveService, FakeGmailService, FakeKeyring
from property_minutes.core.config_manager import ConfigManager
from property_minutes.core.models import (
    KnowledgeLevel,
    Location,
    MeetingContext,
    MeetingRequest,
    ParticipantProfile,
    ParticipantStyle,
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep developer credentials out of the tests."""
    for name in (
        "GEMINI_API_KEY",
        "GOOGLE_OAUTH_CLIENT_ID",
        "GOOGLE_OAUTH_CLIENT_SECRET",
        "PROPERTY_MINUTES_HOME",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def keyring_store(monkeypatch):
    """In-memory keyring so no test touches the system keyring."""
    store = FakeKeyring()
    monkeypatch.setattr("property_minutes.core.security_manager.keyring", store)
    return store


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for configuration files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def config_manager(temp_config_dir):
    """Configuration manager backed by a temporary directory."""
    return ConfigManager(config_dir=temp_config_dir)


@pytest.fixture
def meeting_request():
    return MeetingRequest(
        date=date(2024, 5, 10),
        start_time="14:00",
        end_time="15:00",
        location=Location.TOKYO,
        participant_keys=["president", "wife"],
        mail_window_start=date(2024, 4, 10),
        mail_window_end=date(2024, 5, 11),
    )


@pytest.fixture
def meeting_context():
    return MeetingContext(
        date=date(2024, 5, 10),
        start_time="14:00",
        end_time="15:00",
        location=Location.NAGANO,
        participants=[
            ParticipantProfile(
                "山田太郎", "代表取締役社長", KnowledgeLevel.HIGH, ParticipantStyle.PROFESSIONAL
            ),
            ParticipantProfile(
                "山田花子", "取締役", KnowledgeLevel.BEGINNER, ParticipantStyle.CASUAL
            ),
        ],
        company_name="株式会社テスト不動産",
    )


@pytest.fixture
def sample_minutes_text():
    """Draft in the shape the prompt asks for."""
    return "\n".join(
        [
            "株式会社テスト不動産",
            "議事録",
            "",
            "日時: 2024年5月10日 14:00～15:00",
            "場所: 東京事務所",
            "参加者: 山田太郎、山田花子",
            "",
            "【議題】",
            "1. 嵐山町戸建の購入検討",
            "",
            "【議事内容】",
            "1. 嵐山町戸建",
            "検討結果: 価格は500万円と安価だが、駅から遠く賃貸需要が見込めないため見送る。",
            "",
            "【結論】",
            "今回の物件は見送る。",
            "",
            "以上",
        ]
    )


@pytest.fixture
def gmail_service():
    return FakeGmailService()


@pytest.fixture
def docs_service():
    return FakeDocsService()


@pytest.fixture
def drive_service():
    return FakeDriveService()


@pytest.fixture
def mock_service_factory():
    """Service factory whose clients are replaced per test."""
    factory = Mock()
    factory.create_gmail_client = AsyncMock()
    factory.create_gemini_client = AsyncMock()
    factory.create_docs_client = AsyncMock()
    factory.create_drive_client = AsyncMock()
    factory.close_all = AsyncMock()
    return factory
