"""
Short-answer evaluator backed by Gemini.

Sends the question, the model answer and the student's answer to Gemini with
a JSON response schema and returns a {score, explanation} pair on a 0-5
rubric. Provider errors are retried with exponential backoff and jitter;
when retries run out, or the model output cannot be parsed, an
ExternalServiceError is raised for the scoring engine to recover from.
"""

import asyncio
import random
import time
from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, ValidationError as PydanticValidationError

from prajna import config
from prajna.errors import ExternalServiceError
from prajna.logging_config import get_logger, log_with_context

logger = get_logger("evaluator")


class ShortAnswerEvaluation(BaseModel):
    """Structured output requested from the model."""
    explanation: str
    score: float


SHORT_ANSWER_PROMPT = """
You are an expert educational evaluator. Your task is to evaluate a student's short answer response.

IDEAL ANSWER:
{ideal_answer}

QUESTION: {question}

STUDENT'S ANSWER: {answer}

IMPORTANT GUIDELINES:
1. Carefully analyze the student's answer in relation to the question and the ideal answer.
2. Evaluate the accuracy, completeness, and relevance of the answer.
3. Score the answer on a scale of 0-5, where:
   - 0: Completely incorrect or irrelevant
   - 1: Mostly incorrect with minimal relevant content
   - 2: Partially correct but missing key information
   - 3: Mostly correct with some minor inaccuracies
   - 4: Correct and comprehensive
   - 5: Excellent, demonstrating deep understanding
4. Provide a concise explanation (2-3 sentences) justifying your score and highlighting strengths and weaknesses.
"""


class GeminiShortAnswerEvaluator:
    """Grades one short answer per call. Safe to share across requests."""

    def __init__(self, api_key: str = None, model: str = None, client=None,
                 max_retries: int = None, backoff_base: float = None):
        self.model = model or config.GEMINI_MODEL
        self.max_retries = max(1, max_retries if max_retries is not None else config.EVALUATOR_MAX_RETRIES)
        self.backoff_base = backoff_base if backoff_base is not None else config.EVALUATOR_BACKOFF_BASE

        api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        if client is not None:
            self.client = client
        elif api_key:
            self.client = genai.Client(api_key=api_key)
        else:
            self.client = None
            log_with_context(logger, "WARNING",
                "GEMINI_API_KEY is not set; short answers will receive the fallback score")

    def _backoff_delay(self, attempt: int) -> float:
        return self.backoff_base * (2 ** (attempt - 1)) + random.uniform(0, self.backoff_base)

    async def evaluate(self, ideal_answer: str, question: str, answer: str) -> ShortAnswerEvaluation:
        """
        Grade a single answer.

        Raises:
            ExternalServiceError: provider unavailable, retries exhausted
                or unparseable model output.
        """
        if self.client is None:
            raise ExternalServiceError("Gemini client is not configured")

        prompt = SHORT_ANSWER_PROMPT.format(
            ideal_answer=ideal_answer or "", question=question, answer=answer
        )
        generation_config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=ShortAnswerEvaluation,
            temperature=config.GEMINI_TEMPERATURE,
        )

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            start_time = time.time()
            try:
                response = await self.client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=generation_config,
                )
            except genai_errors.APIError as e:
                last_error = e
                log_with_context(logger, "WARNING",
                    "Gemini call failed (attempt {}/{}): {}".format(attempt, self.max_retries, e),
                    extra_data={"attempt": attempt, "model": self.model})
                if attempt < self.max_retries:
                    await asyncio.sleep(self._backoff_delay(attempt))
                continue

            duration_ms = (time.time() - start_time) * 1000
            try:
                evaluation = ShortAnswerEvaluation.model_validate_json(response.text or "")
            except PydanticValidationError as e:
                raise ExternalServiceError("Unparseable evaluation from Gemini: {}".format(e)) from e

            log_with_context(logger, "DEBUG",
                "Short answer evaluated: score={}".format(evaluation.score),
                extra_data={"duration_ms": round(duration_ms, 2), "attempt": attempt})
            return evaluation

        raise ExternalServiceError(
            "Gemini evaluation failed after {} attempts: {}".format(self.max_retries, last_error)
        ) from last_error


_evaluator: Optional[GeminiShortAnswerEvaluator] = None


def get_evaluator() -> GeminiShortAnswerEvaluator:
    """FastAPI dependency returning the process-wide evaluator."""
    global _evaluator
    if _evaluator is None:
        _evaluator = GeminiShortAnswerEvaluator()
    return _evaluator
