"""
AI analysis of patient answers using the OpenAI API.

- Chat completions in JSON mode for text and photo answers
- Whisper transcription for voice answers
- Replies are validated against ``AnalysisResult``; anything else raises
  ``AnalysisError`` so the Celery task can retry
"""

import json
from typing import Optional

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from core.exceptions import AnalysisError
from core.integrations import IntegrationConfigHolder, OpenAIConfig, openai_config
from core.logging import get_logger
from schemas.answer import AnalysisContext, AnalysisResult

logger = get_logger(__name__)


SYSTEM_PROMPT_MEDICAL_ANALYSIS = """You are a medical assistant reviewing a patient's reply to a scheduled follow-up question.
Assess the patient's condition and return ONLY a JSON object with these fields:
- sentiment: "positive", "neutral" or "negative"
- risk_level: "LOW", "MEDIUM", "HIGH" or "CRITICAL"
- extracted_data: object with anything clinically relevant (symptoms, complaints, mood, medication taken)
- summary: one or two sentences for the care team
- should_alert: true when a tracker or doctor must look at this reply
- alert_reason: short reason when should_alert is true, otherwise null
Be conservative: severe pain, bleeding, fever, breathing problems or suicidal statements are at least HIGH."""

PROMPT_PHOTO_ANALYSIS = """You are a medical assistant reviewing a photo sent by a patient during follow-up.
Describe what is clinically visible (wound state, swelling, redness, discharge) and assess the risk.
Return ONLY a JSON object with the fields sentiment, risk_level, extracted_data, summary, should_alert, alert_reason
as described for text analysis."""


def _format_context(context: Optional[AnalysisContext]) -> str:
    if context is None:
        return ""
    lines = [
        f"Patient: {context.patient_name}",
        f"Program: {context.period_name or '-'} (day {context.day_number})",
        f"Question: {context.question}",
    ]
    if context.ai_prompt:
        lines.append(f"Instructions for this question: {context.ai_prompt}")
    if context.previous_answers:
        lines.append("Recent history:")
        for prev in context.previous_answers:
            lines.append(f'- Q: "{prev.question}" A: "{prev.content or "[media]"}" (risk: {prev.risk_level.value})')
    return "\n".join(lines)


def parse_analysis(content: Optional[str]) -> AnalysisResult:
    """Validate a model reply into ``AnalysisResult``."""
    if not content:
        raise AnalysisError("Empty reply from AI model")
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"AI reply is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise AnalysisError("AI reply is not a JSON object")
    if isinstance(payload.get("risk_level"), str):
        payload["risk_level"] = payload["risk_level"].upper()
    try:
        return AnalysisResult.model_validate(payload)
    except ValidationError as e:
        raise AnalysisError(f"AI reply does not match the analysis schema: {e}") from e


class AIAnalysisService:
    """Analyzer backed by OpenAI chat completions."""

    def __init__(self, config: Optional[IntegrationConfigHolder[OpenAIConfig]] = None):
        self.config = config or openai_config

    def _snapshot(self) -> OpenAIConfig:
        config = self.config.get()
        if config is None:
            raise AnalysisError("OpenAI integration is not configured")
        return config

    async def analyze(
        self,
        text: Optional[str],
        photo_url: Optional[str] = None,
        context: Optional[AnalysisContext] = None,
    ) -> AnalysisResult:
        config = self._snapshot()
        client = AsyncOpenAI(api_key=config.api_key)

        context_text = _format_context(context)
        if photo_url:
            system_prompt = PROMPT_PHOTO_ANALYSIS
            user_content = [
                {"type": "text", "text": f"{context_text}\n\n[PHOTO ANALYSIS REQUEST]\nCaption: {text or ''}"},
                {"type": "image_url", "image_url": {"url": photo_url}},
            ]
        else:
            system_prompt = SYSTEM_PROMPT_MEDICAL_ANALYSIS
            user_content = f"{context_text}\n\nPatient reply: {text or ''}"

        try:
            completion = await client.chat.completions.create(
                model=config.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                response_format={"type": "json_object"},
                max_tokens=config.max_tokens,
                temperature=config.temperature,
            )
        except OpenAIError as e:
            logger.error("OpenAI analysis request failed", error=str(e))
            raise AnalysisError(str(e)) from e

        content = completion.choices[0].message.content if completion.choices else None
        result = parse_analysis(content)
        logger.info(
            "Answer analyzed",
            patient_id=context.patient_id if context else None,
            risk_level=result.risk_level.value,
            should_alert=result.should_alert,
        )
        return result


class TranscriptionService:
    """Speech-to-text for voice answers."""

    def __init__(self, config: Optional[IntegrationConfigHolder[OpenAIConfig]] = None, timeout: float = 30.0):
        self.config = config or openai_config
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        config = self.config.get()
        return bool(config and config.transcription_enabled)

    async def transcribe(self, audio_url: str) -> Optional[str]:
        config = self.config.get()
        if config is None or not config.transcription_enabled:
            return None

        try:
            async with httpx.AsyncClient(follow_redirects=True) as http:
                response = await http.get(audio_url, timeout=self.timeout)
                response.raise_for_status()
                audio = response.content
        except httpx.HTTPError as e:
            raise AnalysisError(f"Could not download voice message: {e}") from e

        client = AsyncOpenAI(api_key=config.api_key)
        try:
            transcription = await client.audio.transcriptions.create(
                model=config.transcription_model,
                file=("voice.ogg", audio),
            )
        except OpenAIError as e:
            logger.error("Transcription failed", audio_url=audio_url, error=str(e))
            raise AnalysisError(str(e)) from e

        return (transcription.text or "").strip() or None
