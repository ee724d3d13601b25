"""Unit tests for the Gemini drafting client."""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from property_minutes.core.models import MailMessage
from property_minutes.integrations.gemini_client import (
    NO_MAIL_PLACEHOLDER,
    GeminiClient,
    build_minutes_prompt,
    classify_gemini_error,
    format_mail_blocks,
    load_prompt,
)
from property_minutes.utils.exceptions import (
    AuthKeyInvalid,
    ConfigurationError,
    EmptyResponse,
    GeminiIntegrationError,
    QuotaExceeded,
)


@pytest.fixture
def mail_messages():
    return [
        MailMessage(
            id="m1",
            subject="嵐山町戸建のご紹介",
            sender="agent@example.com",
            date=datetime(2024, 5, 6, 10, 0),
            body_text="価格: 500万円\n駅徒歩39分",
        ),
        MailMessage(
            id="m2",
            subject="長野市アパート",
            sender="broker@example.com",
            date=datetime(2024, 5, 8, 9, 30),
            body_text="利回り 12%",
        ),
    ]


@pytest.fixture
def mock_genai():
    with patch("property_minutes.integrations.gemini_client.genai") as genai:
        yield genai


def response(text="", finish_reason=1):
    return SimpleNamespace(text=text, candidates=[SimpleNamespace(finish_reason=finish_reason)])


class _BlockedResponse:
    """Response whose ``text`` accessor raises, as a blocked response does."""

    def __init__(self, candidates):
        self.candidates = candidates

    @property
    def text(self):
        raise ValueError("The response.text quick accessor requires a valid Part")


class TestPromptAssembly:
    """Test suite for the drafting prompt."""

    def test_prompt_assets_are_packaged(self):
        template = load_prompt("minutes-template.md")
        guidelines = load_prompt("minutes-guidelines.md")

        assert "【議題】" in template
        assert "以上" in template
        assert guidelines.strip()

    def test_missing_prompt_asset(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_prompt("missing.md", tmp_path)

    def test_mail_blocks(self, mail_messages):
        blocks = format_mail_blocks(mail_messages)

        assert "### メール 1" in blocks
        assert "### メール 2" in blocks
        assert "- 件名: 嵐山町戸建のご紹介" in blocks
        assert "- 日付: 2024/5/6" in blocks
        assert blocks.index("嵐山町") < blocks.index("長野市")

    def test_no_mail_placeholder(self):
        assert format_mail_blocks([]) == NO_MAIL_PLACEHOLDER

    def test_prompt_contents(self, mail_messages, meeting_context):
        prompt = build_minutes_prompt(mail_messages, meeting_context, "TEMPLATE", "GUIDELINES")

        assert "TEMPLATE" in prompt
        assert "GUIDELINES" in prompt
        assert "- 会社名: 株式会社テスト不動産" in prompt
        assert "- 日時: 2024年5月10日 14:00～15:00" in prompt
        assert "- 場所: 長野事務所" in prompt
        assert "- 参加者: 山田太郎、山田花子" in prompt
        assert "- 山田太郎: 知識レベル=high, スタイル=professional, 役職=代表取締役社長" in prompt
        assert "- 山田花子: 知識レベル=beginner, スタイル=casual, 役職=取締役" in prompt
        assert "価格: 500万円" in prompt
        assert "検討結果:" in prompt


class TestErrorClassification:
    """Test suite for classify_gemini_error."""

    def test_invalid_key(self):
        error = classify_gemini_error(ValueError("400 API key not valid. API_KEY_INVALID"))
        assert isinstance(error, AuthKeyInvalid)
        assert error.kind == "AuthKeyInvalid"

    def test_quota(self):
        assert isinstance(classify_gemini_error(RuntimeError("429 Resource exhausted")), QuotaExceeded)
        assert isinstance(classify_gemini_error(RuntimeError("Quota exceeded")), QuotaExceeded)

    def test_status_code_attribute(self):
        error = RuntimeError("Too many requests")
        error.code = 429
        assert isinstance(classify_gemini_error(error), QuotaExceeded)

    def test_429_inside_other_numbers_is_not_quota(self):
        error = classify_gemini_error(RuntimeError("request id 54290 failed"))
        assert type(error) is GeminiIntegrationError

        error = classify_gemini_error(RuntimeError("500 internal error at offset 4291"))
        assert type(error) is GeminiIntegrationError

    def test_other(self):
        error = classify_gemini_error(RuntimeError("500 internal"))
        assert type(error) is GeminiIntegrationError

    def test_already_classified(self):
        original = EmptyResponse("blank")
        assert classify_gemini_error(original) is original


class TestGeminiClient:
    """Test suite for GeminiClient."""

    def test_requires_api_key(self, mock_genai):
        with pytest.raises(ConfigurationError):
            GeminiClient(api_key="")
        mock_genai.configure.assert_not_called()

    def test_initialization(self, mock_genai):
        client = GeminiClient(api_key="test-key", model_name="gemini-test")

        mock_genai.configure.assert_called_once_with(api_key="test-key")
        assert mock_genai.GenerativeModel.call_args.kwargs["model_name"] == "gemini-test"
        assert client.model is mock_genai.GenerativeModel.return_value

    @pytest.mark.asyncio
    async def test_generate_minutes(self, mock_genai, mail_messages, meeting_context):
        model = mock_genai.GenerativeModel.return_value
        model.generate_content.return_value = response("株式会社テスト不動産\n議事録\n以上")
        client = GeminiClient(api_key="test-key", temperature=0.2, max_tokens=1024)

        text = await client.generate_minutes(mail_messages, meeting_context)

        assert text == "株式会社テスト不動産\n議事録\n以上"
        prompt = model.generate_content.call_args.args[0]
        assert "嵐山町戸建のご紹介" in prompt
        mock_genai.types.GenerationConfig.assert_called_once_with(
            temperature=0.2, max_output_tokens=1024, candidate_count=1
        )

    @pytest.mark.asyncio
    async def test_blank_response(self, mock_genai, mail_messages, meeting_context):
        mock_genai.GenerativeModel.return_value.generate_content.return_value = response("  \n ")
        client = GeminiClient(api_key="test-key")

        with pytest.raises(EmptyResponse):
            await client.generate_minutes(mail_messages, meeting_context)

    @pytest.mark.asyncio
    async def test_safety_block(self, mock_genai, mail_messages, meeting_context):
        mock_genai.GenerativeModel.return_value.generate_content.return_value = _BlockedResponse(
            [SimpleNamespace(finish_reason=3)]
        )
        client = GeminiClient(api_key="test-key")

        with pytest.raises(GeminiIntegrationError) as exc_info:
            await client.generate_minutes(mail_messages, meeting_context)

        assert "safety" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_truncated_output_is_kept(self, mock_genai, mail_messages, meeting_context):
        mock_genai.GenerativeModel.return_value.generate_content.return_value = response(
            "株式会社テスト不動産\n議事録", finish_reason=2
        )
        client = GeminiClient(api_key="test-key")

        text = await client.generate_minutes(mail_messages, meeting_context)

        assert text.startswith("株式会社テスト不動産")

    @pytest.mark.asyncio
    async def test_text_from_candidate_parts(self, mock_genai, mail_messages, meeting_context):
        parts = [SimpleNamespace(text="前半"), SimpleNamespace(text="後半")]
        candidate = SimpleNamespace(finish_reason=1, content=SimpleNamespace(parts=parts))
        mock_genai.GenerativeModel.return_value.generate_content.return_value = _BlockedResponse(
            [candidate]
        )
        client = GeminiClient(api_key="test-key")

        assert await client.generate_minutes(mail_messages, meeting_context) == "前半後半"

    @pytest.mark.asyncio
    async def test_quota_error(self, mock_genai, mail_messages, meeting_context):
        mock_genai.GenerativeModel.return_value.generate_content.side_effect = RuntimeError(
            "429 Resource has been exhausted (e.g. check quota)."
        )
        client = GeminiClient(api_key="test-key")

        with pytest.raises(QuotaExceeded):
            await client.generate_minutes(mail_messages, meeting_context)
