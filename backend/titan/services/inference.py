"""
Inference callers - send a command or a food photo to the chat model and return its raw reply.

The reply is untrusted text; turning it into an Action is the interpreter's job.
"""

import asyncio
import logging
from typing import List, Optional

import httpx

from ..core.errors import InferenceFailed
from ..llm.base import LLMMessage, LLMProvider

logger = logging.getLogger(__name__)

COMMAND_SYSTEM_PROMPT = """You are an AI Nutritionist and health tracker. Analyze the user input and extract health tracking actions. Return ONLY a valid JSON object.

WATER Actions:
If the user mentions drinking water/liquids, return:
{ "action": "add_water", "value": number, "unit": "ml" }

Examples:
- "I drank a glass of water" -> { "action": "add_water", "value": 250, "unit": "ml" }
- "I drank 2 glasses of water" -> { "action": "add_water", "value": 500, "unit": "ml" }
- "I drank 1 liter of water" -> { "action": "add_water", "value": 1000, "unit": "ml" }

Convert all water measurements to ml (1 glass = 250ml, 1 liter = 1000ml, 1 cup = 240ml).

SLEEP Actions:
If the user mentions sleep/nap, return:
{ "action": "add_sleep", "value": number, "unit": "hours" }

Examples:
- "I slept 7 hours" -> { "action": "add_sleep", "value": 7, "unit": "hours" }
- "I had a 30 minute nap" -> { "action": "add_sleep", "value": 0.5, "unit": "hours" }

Convert all sleep to hours (30 min = 0.5 hours).

FOOD Actions:
If the user mentions eating food, YOU MUST estimate the calories and macros based on your knowledge. Return:
{ "action": "log_food", "calories": number, "protein": number, "carbs": number, "fat": number, "food_name": "string" }

Examples:
- "I ate a Big Mac" -> { "action": "log_food", "calories": 550, "protein": 25, "carbs": 46, "fat": 30, "food_name": "Big Mac" }
- "I had a chicken breast" -> { "action": "log_food", "calories": 165, "protein": 31, "carbs": 0, "fat": 4, "food_name": "Chicken Breast" }
- "I ate pizza" -> { "action": "log_food", "calories": 285, "protein": 12, "carbs": 36, "fat": 10, "food_name": "Pizza Slice" }
- "I had a salad" -> { "action": "log_food", "calories": 150, "protein": 5, "carbs": 15, "fat": 8, "food_name": "Salad" }

Use your nutritional knowledge to provide realistic estimates. Protein, carbs, and fat should be in grams."""

IMAGE_SYSTEM_PROMPT = (
    'You are a nutrition analysis AI. Analyze food images and return nutritional information. '
    'Return ONLY a valid JSON object with this exact structure: '
    '{ "food_name": "string", "calories": number, "protein": number, "carbs": number, "fat": number }. '
    'Provide estimates in grams for protein, carbs, and fat.'
)

IMAGE_USER_PROMPT = (
    'Analyze this food image. Return ONLY a JSON object with: '
    '{ food_name: string, calories: number, protein: number, carbs: number, fat: number }. '
    'Provide realistic estimates.'
)


class InferenceCaller:
    """
    Base for single-shot chat calls. Every failure surfaces as ``InferenceFailed``.
    """

    def __init__(self, name: str, llm_provider: Optional[LLMProvider], timeout: float = 60.0):
        self.name = name
        self._llm_provider = llm_provider
        self.timeout = timeout

    def is_configured(self) -> bool:
        return self._llm_provider is not None

    async def _complete(self, messages: List[LLMMessage], **kwargs) -> str:
        if self._llm_provider is None:
            raise InferenceFailed(
                f"{self.name} not configured. Set LLM_API_KEY (or OPENAI_API_KEY) in environment."
            )

        try:
            response = await asyncio.wait_for(
                self._llm_provider.chat_completion(messages, **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise InferenceFailed(f"{self.name} timed out after {self.timeout:g}s")
        except httpx.HTTPStatusError as e:
            raise InferenceFailed(f"{self.name} API error: {_error_message(e.response)}")
        except (httpx.HTTPError, KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            raise InferenceFailed(f"{self.name} failed: {e}")

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{self.name} raw reply: {response.content}")
        return response.content


class CommandClassifier(InferenceCaller):
    """Classifies a transcribed command into a JSON action."""

    def __init__(self, llm_provider: Optional[LLMProvider], timeout: float = 60.0,
                 temperature: float = 0.3):
        super().__init__("CommandClassifier", llm_provider, timeout)
        self.temperature = temperature

    async def classify(self, text: str) -> str:
        """
        Returns:
            Raw message content, expected to be a JSON action object
        """
        return await self._complete(
            [
                LLMMessage.text("system", COMMAND_SYSTEM_PROMPT),
                LLMMessage.text("user", text),
            ],
            temperature=self.temperature,
        )


class NutritionAnalyzer(InferenceCaller):
    """Estimates nutrition facts from a food photo."""

    def __init__(self, llm_provider: Optional[LLMProvider], timeout: float = 60.0,
                 max_tokens: int = 300):
        super().__init__("NutritionAnalyzer", llm_provider, timeout)
        self.max_tokens = max_tokens

    async def analyze(self, image_base64: str, media_type: str = "image/jpeg") -> str:
        """
        Args:
            image_base64: Base64 image, with or without a ``data:...;base64,`` prefix

        Returns:
            Raw message content, expected to be a JSON nutrition object
        """
        return await self._complete(
            [
                LLMMessage.text("system", IMAGE_SYSTEM_PROMPT),
                LLMMessage.with_image("user", IMAGE_USER_PROMPT, strip_data_url(image_base64), media_type),
            ],
            max_tokens=self.max_tokens,
        )


def strip_data_url(image: str) -> str:
    """Drop a ``data:image/...;base64,`` prefix if present."""
    if image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image


def _error_message(response: httpx.Response) -> str:
    """Pull ``error.message`` out of an error envelope, falling back to the status text."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or str(response.status_code)
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if message:
            return str(message)
    return response.reason_phrase or str(response.status_code)
