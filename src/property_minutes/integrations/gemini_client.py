"""Google Gemini AI client for drafting property meeting minutes."""

import asyncio
import re
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from ..core.models import MailMessage, MeetingContext
from ..utils.exceptions import (
    AuthKeyInvalid,
    ConfigurationError,
    EmptyResponse,
    GeminiIntegrationError,
    QuotaExceeded,
)
from ..utils.logging_config import get_logger, get_security_logger
from .base_client import RateLimiter

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
TEMPLATE_FILE = "minutes-template.md"
GUIDELINES_FILE = "minutes-guidelines.md"

NO_MAIL_PLACEHOLDER = "（メールデータなし）"

# Provider errors read "429 Resource exhausted" or carry the code on ``code``
QUOTA_STATUS = re.compile(r"^\s*429\b")

# google.ai.generativelanguage Candidate.FinishReason
FINISH_REASON_NAMES = {
    0: "FINISH_REASON_UNSPECIFIED",
    1: "STOP",
    2: "MAX_TOKENS",
    3: "SAFETY",
    4: "RECITATION",
    5: "OTHER",
}

FINISH_REASON_ERRORS = {
    "SAFETY": (
        "Content was blocked by Gemini's safety filters. "
        "The mail data may contain content that violates the model's usage policies."
    ),
    "RECITATION": (
        "Content was blocked due to recitation concerns. "
        "The model detected potential copyright or citation issues."
    ),
    "OTHER": (
        "Content generation was blocked for other reasons. "
        "Please try again with different mail."
    ),
}


def load_prompt(file_name: str, prompts_dir: Path = PROMPTS_DIR) -> str:
    """Read one of the packaged prompt text assets."""
    path = prompts_dir / file_name
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Failed to read prompt file {path}: {e}")


def format_meeting_date(value: date) -> str:
    return f"{value.year}年{value.month}月{value.day}日"


def format_mail_date(value: date) -> str:
    return f"{value.year}/{value.month}/{value.day}"


def format_mail_blocks(messages: List[MailMessage]) -> str:
    """Render mail as numbered blocks for the prompt."""
    if not messages:
        return NO_MAIL_PLACEHOLDER

    blocks = []
    for index, message in enumerate(messages, start=1):
        blocks.append(
            f"### メール {index}\n"
            f"- 件名: {message.subject}\n"
            f"- 送信者: {message.sender}\n"
            f"- 日付: {format_mail_date(message.date)}\n"
            f"- 本文:\n"
            f"{message.body_text}\n"
            f"---\n"
        )
    return "\n".join(blocks)


def build_minutes_prompt(
    messages: List[MailMessage],
    context: MeetingContext,
    template: str,
    guidelines: str,
) -> str:
    """Assemble the drafting prompt from mail, meeting metadata and profiles."""
    participant_names = "、".join(p.name for p in context.participants)
    participant_details = "\n".join(
        f"- {p.name}: 知識レベル={p.knowledge_level.value}, "
        f"スタイル={p.style.value}, 役職={p.role}"
        for p in context.participants
    )

    return f"""あなたは不動産賃貸業法人の議事録作成アシスタントです。
以下の情報を元に、物件検討会議の議事録を作成してください。

# 議事録テンプレート
{template}

# 議事録作成ガイドライン
{guidelines}

# 会議情報
- 会社名: {context.company_name}
- 日時: {format_meeting_date(context.date)} {context.start_time}～{context.end_time}
- 場所: {context.location.label}
- 参加者: {participant_names}

# 参加者詳細
{participant_details}

# 物件情報メール
{format_mail_blocks(messages)}

# 指示
上記の「議事録テンプレート」と「議事録作成ガイドライン」に従って、物件検討会議の議事録を作成してください。

## 重要な注意事項

### 最重要: 会話形式の禁止

1. 個人の発言を記載しない。「〇〇取締役は」「〇〇からは」などの個人名は一切使わない
2. カギ括弧「」で発言を引用しない
3. 会話形式にせず、検討結果のみを記載する

必須フォーマット:
- 各物件の議事内容は「検討結果:」で始まる1段落で完結させる
- 会議全体の結論を統合して記載する
- 客観的・分析的な文体で記載する

良い例:
検討結果: 価格は500万円と安価だが、立地が駅徒歩39分と極めて悪く、賃貸需要が見込めない。高い空室リスクが想定されるため、見送るべきである。

悪い例:
検討結果: 価格は380万円と安価である。
〇〇取締役からは「駅からとても遠いので、入居者がいるのか心配です。」との意見が出た。

### その他の注意事項
1. メールの内容から物件情報を抽出し、各物件について議題を設定する
2. メールにない情報は推測で追加しない
3. A4用紙1〜2枚程度のボリューム（800〜1,600文字）
4. 議事録は「だ・である調」で記載する
5. 参加者欄には名前のみを記載する（役職は含めない）

議事録の本文のみを出力してください（説明や前置きは不要です）。
"""


def classify_gemini_error(error: Exception) -> GeminiIntegrationError:
    """Map a provider exception onto the Gemini error kinds."""
    if isinstance(error, GeminiIntegrationError):
        return error

    text = str(error)
    lowered = text.lower()

    if "api key" in lowered or "api_key_invalid" in lowered:
        return AuthKeyInvalid(f"Gemini API key is invalid: {text}")
    if (
        getattr(error, "code", None) == 429
        or QUOTA_STATUS.match(text)
        or "quota" in lowered
        or "resource exhausted" in lowered
    ):
        return QuotaExceeded(f"Gemini usage limit reached, retry later: {text}")
    return GeminiIntegrationError(f"Content generation failed: {text}")


def _finish_reason_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "name"):
        return value.name
    if isinstance(value, int):
        return FINISH_REASON_NAMES.get(value)
    return str(value)


class GeminiClient:
    """Drafts minutes text from property mail with a Gemini model."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.0-flash",
        temperature: float = 0.7,
        max_tokens: int = 8192,
        rate_limit: int = 60,
    ):
        self.logger = get_logger(__name__)
        self.security_logger = get_security_logger()

        if not api_key:
            raise ConfigurationError(
                "Gemini API key is not configured. Set GEMINI_API_KEY or ai.gemini_api_key."
            )

        self.api_key = api_key
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.rate_limiter = RateLimiter(max_requests=rate_limit, time_window=60)

        self._initialize_client()

    def _initialize_client(self) -> None:
        """Initialize Gemini client with API key."""
        try:
            genai.configure(api_key=self.api_key)

            self.model = genai.GenerativeModel(
                model_name=self.model_name,
                safety_settings={
                    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_ONLY_HIGH,
                    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
                    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
                    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
                },
            )

            self.logger.info(f"Gemini client initialized with model {self.model_name}")

        except Exception as e:
            self.security_logger.log_authentication_attempt(
                service="gemini", success=False, error=str(e)
            )
            raise classify_gemini_error(e)

    async def generate_minutes(
        self, messages: List[MailMessage], context: MeetingContext
    ) -> str:
        """Draft minutes text for the meeting from the retrieved mail.

        Args:
            messages: Property mail, in search order
            context: Meeting metadata and participant profiles

        Returns:
            Raw model text, one line per minutes line

        Raises:
            EmptyResponse: The model returned blank text
            AuthKeyInvalid: The API key was rejected
            QuotaExceeded: The usage quota is exhausted
            GeminiIntegrationError: Any other generation failure
        """
        prompt = build_minutes_prompt(
            messages,
            context,
            load_prompt(TEMPLATE_FILE),
            load_prompt(GUIDELINES_FILE),
        )

        self.logger.info(
            f"Drafting minutes from {len(messages)} mails for "
            f"{len(context.participants)} participants"
        )

        response = await self._generate_content(prompt)
        content = self._process_response(response)

        self.logger.info(f"Drafted minutes, {len(content)} characters")
        return content

    async def _generate_content(self, prompt: str) -> Any:
        """Generate content using Gemini API."""
        await self.rate_limiter.acquire()

        generation_config = genai.types.GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
            candidate_count=1,
        )

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.model.generate_content(
                    prompt, generation_config=generation_config
                ),
            )
        except Exception as e:
            self.logger.error(f"Gemini request failed: {e}")
            raise classify_gemini_error(e)

        self.security_logger.log_api_request(
            service="gemini",
            endpoint="generate_content",
            method="POST",
            model=self.model_name,
        )
        return response

    def _check_finish_reason(self, candidate: Any) -> None:
        """Check if response was blocked by safety filters."""
        reason = _finish_reason_name(getattr(candidate, "finish_reason", None))

        if reason in FINISH_REASON_ERRORS:
            raise GeminiIntegrationError(FINISH_REASON_ERRORS[reason])

        if reason == "MAX_TOKENS":
            self.logger.warning("Gemini output was truncated at the token limit")

    def _extract_content(self, response: Any) -> str:
        """Extract text content from response."""
        try:
            return response.text or ""
        except Exception as e:
            self.logger.debug(f"response.text unavailable, reading parts: {e}")

        content = ""
        for candidate in getattr(response, "candidates", None) or []:
            parts = getattr(getattr(candidate, "content", None), "parts", None) or []
            for part in parts:
                content += getattr(part, "text", "") or ""
        return content

    def _process_response(self, response: Any) -> str:
        candidates = getattr(response, "candidates", None)
        if candidates:
            self._check_finish_reason(candidates[0])

        content = self._extract_content(response)
        if not content or not content.strip():
            raise EmptyResponse("Gemini returned an empty response")

        return content

    async def close(self) -> None:
        self.model = None
        self.logger.info("Gemini client closed")
