# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""
Pageant coaching text generation through Gemini.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional, Protocol

from google import genai
from google.genai import types
from pydantic import BaseModel, Field, ValidationError

from runway.errors import UpstreamServiceError

logger = logging.getLogger(__name__)

CHAT_MAX_OUTPUT_TOKENS = 200
FEEDBACK_MAX_OUTPUT_TOKENS = 500
COACH_TEMPERATURE = 0.7
MIN_SCORE = 1
MAX_SCORE = 10

COACH_SYSTEM_PROMPT = """You are an expert pageant coach with years of experience helping contestants win major beauty pageants. You are knowledgeable about:
- Runway walking techniques and stage presence
- Interview preparation and public speaking
- Talent performance and presentation
- Evening gown and swimsuit presentation
- Pageant etiquette and competition strategy
- Fitness, nutrition, and wellness for pageants
- Mental preparation and confidence building
- Hair, makeup, and styling tips
- Community service and platform development

Your responses should be expert-level, encouraging but practical, concise and actionable (2-3 sentences maximum), and professional but warm in tone."""

FEEDBACK_SYSTEM_PROMPT = """You are an expert pageant coach and interview trainer. Analyze the pageant interview response and provide specific, actionable feedback. Focus on:
1. Content quality and relevance
2. Structure and organization
3. Confidence and authenticity
4. Areas for improvement
5. Specific strengths to build upon

Return JSON with these fields:
- score: number (1-10)
- strengths: array of 2-3 specific strengths
- improvements: array of 2-3 specific areas for improvement
- overall: string with an overall feedback summary

Be encouraging but constructive."""


class GeminiInvalidResponseException(UpstreamServiceError):
    pass


class ResponseFeedback(BaseModel):
    score: float
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    overall: str = ""


class CoachClient(Protocol):
    """Text generation the API needs for chat and answer feedback."""

    def chat(self, message: str) -> str:
        ...

    def analyze_response(
        self, question: str, response: str, time_taken: Optional[float]
    ) -> ResponseFeedback:
        ...


def clamp_score(score: float) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(round(score))))


def make_feedback_prompt(
    question: str, response: str, time_taken: Optional[float]
) -> str:
    seconds = "unknown" if time_taken is None else f"{time_taken:g}"
    return (
        f'Question: "{question}"\n'
        f'Response: "{response}"\n'
        f"Time taken: {seconds} seconds\n\n"
        "Please analyze this pageant interview response and provide specific feedback."
    )


class GeminiCoachClient:
    def __init__(self, api_key: str | None, model: str = "gemini-2.5-flash"):
        self.api_key = api_key
        self.model = model

    def _client(self) -> genai.Client:
        if not self.api_key:
            raise UpstreamServiceError("GEMINI_API_KEY is not configured")
        return genai.Client(api_key=self.api_key)

    def chat(self, message: str) -> str:
        client = self._client()
        start_time = time.time()
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=message,
                config=types.GenerateContentConfig(
                    system_instruction=COACH_SYSTEM_PROMPT,
                    temperature=COACH_TEMPERATURE,
                    max_output_tokens=CHAT_MAX_OUTPUT_TOKENS,
                ),
            )
        except Exception as e:
            raise UpstreamServiceError(f"Gemini chat call failed: {e}") from e
        logger.info("Gemini chat call took: %.2fs", time.time() - start_time)
        if not response.text:
            raise GeminiInvalidResponseException("Empty chat response")
        return response.text

    def analyze_response(
        self, question: str, response: str, time_taken: Optional[float]
    ) -> ResponseFeedback:
        """Calls Gemini with a response schema and clamps the returned score."""
        client = self._client()
        prompt = make_feedback_prompt(question, response, time_taken)
        start_time = time.time()
        try:
            result = client.models.generate_content(
                model=self.model,
                contents=prompt,
                config={
                    "system_instruction": FEEDBACK_SYSTEM_PROMPT,
                    "response_mime_type": "application/json",
                    "response_schema": ResponseFeedback,
                    "temperature": COACH_TEMPERATURE,
                    "max_output_tokens": FEEDBACK_MAX_OUTPUT_TOKENS,
                },
            )
        except Exception as e:
            raise UpstreamServiceError(f"Gemini feedback call failed: {e}") from e
        logger.info("Gemini feedback call took: %.2fs", time.time() - start_time)

        feedback = result.parsed
        if not isinstance(feedback, ResponseFeedback):
            feedback = parse_feedback(result.text)
        feedback.score = clamp_score(feedback.score)
        return feedback


def parse_feedback(text: str | None) -> ResponseFeedback:
    if not text:
        raise GeminiInvalidResponseException("No feedback received from AI")
    try:
        return ResponseFeedback.model_validate(json.loads(text))
    except (ValueError, ValidationError) as e:
        raise GeminiInvalidResponseException(f"Malformed feedback: {e}") from e
