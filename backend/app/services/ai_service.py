# /app/services/ai_service.py

import re
import json
import hashlib
import logging
import asyncio
from google import genai
from google.genai.types import GenerateContentConfig
from openai import AsyncOpenAI
from pydantic import ValidationError
from typing import Optional, Dict, List, Any, Sequence

from app.config import strings
from app.config.settings import settings
from app.config.persona import (
    CHAT_SYSTEM_PROMPT, TONE_INSTRUCTIONS, LENGTH_INSTRUCTIONS, MODE_INSTRUCTIONS,
    FEATURE_DESCRIPTIONS, ABANDONED_CART_GUIDANCE, FALLBACK_GUIDANCE,
    INTENT_CLASSIFICATION_PROMPT, FAQ_MATCH_PROMPT,
)
from app.models.domain import ChatMessage, IntentResult, FaqMatch, Faq, Intent
from app.services.cache_service import cache_service
from app.utils.circuit_breaker import CircuitBreaker
from app.utils.exceptions import AIUnavailableError
from app.utils.metrics import ai_requests_counter


# This service encapsulates all interactions with external AI models (Google
# Gemini first, OpenAI GPT as fallback): chat replies, intent classification
# and FAQ matching. Every public method soft-fails instead of raising.

logger = logging.getLogger(__name__)

VALID_INTENTS = {intent.value for intent in Intent}

# Messages that talk about the shopper's cart or finishing a purchase are
# always routed to the abandoned cart flow, whatever the model answers.
CART_MENTION_PATTERN = re.compile(
    r"\b(my (shopping )?cart|items in my cart|complete my purchase|(proceed to )?check ?out)\b",
    re.IGNORECASE,
)

FAQ_CACHE_TTL_SECONDS = 600

DEFAULT_AI_CUSTOMIZATION = {
    "conversation_mode": "balanced",
    "tone": "professional",
    "response_length": "medium",
    "creativity": 50,
}

DEFAULT_FEATURES = {
    "product_search": True,
    "order_status": True,
    "recommendations": True,
    "inventory": True,
}


def creativity_to_temperature(creativity: Optional[float]) -> float:
    """Maps a 0-100 creativity slider to a sampling temperature in [0.1, 1.5]."""
    if creativity is None:
        creativity = DEFAULT_AI_CUSTOMIZATION["creativity"]
    return max(0.1, min(1.5, float(creativity) / 50))


def build_chat_system_prompt(store_data: Optional[Dict[str, Any]] = None, bot_settings: Optional[Dict[str, Any]] = None) -> str:
    bot_settings = bot_settings or {}
    customization = {**DEFAULT_AI_CUSTOMIZATION, **(bot_settings.get("ai_customization") or {})}
    training = bot_settings.get("custom_training") or {}
    features = {**DEFAULT_FEATURES, **(bot_settings.get("chatbot_features") or {})}

    prompt = CHAT_SYSTEM_PROMPT.format(
        store_name=(store_data or {}).get("name") or "an e-commerce store",
        mode=MODE_INSTRUCTIONS.get(customization["conversation_mode"], MODE_INSTRUCTIONS["balanced"]),
        tone=TONE_INSTRUCTIONS.get(customization["tone"], TONE_INSTRUCTIONS["professional"]),
        length=LENGTH_INSTRUCTIONS.get(customization["response_length"], LENGTH_INSTRUCTIONS["medium"]),
    )

    enabled = [text for key, text in FEATURE_DESCRIPTIONS.items() if features.get(key)]
    prompt += "\n\nYou can assist with the following features:" + "".join(f"\n- {text}" for text in enabled)

    if training.get("additional_instructions"):
        prompt += f"\n\nAdditional instructions: {training['additional_instructions']}"
    if training.get("prohibited_topics"):
        prompt += f"\n\nDo NOT discuss the following topics: {training['prohibited_topics']}"
    if training.get("favored_products"):
        prompt += f"\n\nWhen appropriate, suggest these featured products: {training['favored_products']}"
    if training.get("custom_faqs"):
        prompt += f"\n\nHere are common questions and their answers:\n{training['custom_faqs']}"

    if store_data:
        prompt += (
            "\n\nUse the following store information to provide accurate responses about products, "
            f"policies, and general information:\n{json.dumps(store_data, default=str)}"
        )

    prompt += f"\n\n{ABANDONED_CART_GUIDANCE}"
    prompt += f"\n\n{FALLBACK_GUIDANCE}"
    return prompt


class AIService:
    def __init__(self):
        if settings.gemini_api_key:
            self.gemini_client = genai.Client(api_key=settings.gemini_api_key)
            self.model_name = settings.gemini_model
            logger.info(f"Using Gemini model: {self.model_name}")
        else:
            self.gemini_client = None
            self.model_name = None

        if settings.openai_api_key:
            self.openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
        else:
            self.openai_client = None

        self.timeout = settings.ai_request_timeout_seconds
        self.circuit_breaker = CircuitBreaker("gemini")
        self.openai_breaker = CircuitBreaker("openai")

    @property
    def is_configured(self) -> bool:
        return bool(self.gemini_client or self.openai_client)

    # --- Provider calls ---

    async def _gemini_generate(self, contents: Any, config: GenerateContentConfig) -> str:
        response = await asyncio.wait_for(
            asyncio.to_thread(
                self.gemini_client.models.generate_content,
                model=self.model_name,
                contents=contents,
                config=config,
            ),
            timeout=self.timeout,
        )
        return (response.text or "").strip()

    async def _openai_generate(self, messages: List[Dict[str, str]], **kwargs) -> str:
        response = await asyncio.wait_for(
            self.openai_client.chat.completions.create(
                model=settings.openai_model, messages=messages, **kwargs
            ),
            timeout=self.timeout,
        )
        return (response.choices[0].message.content or "").strip()

    async def get_ai_json_response(self, prompt: str) -> dict:
        """
        Generates a JSON response, trying Gemini first and falling back to OpenAI.
        Raises AIUnavailableError when neither provider returns valid JSON.
        """
        # 1. Try Gemini First
        if self.gemini_client:
            try:
                text = await self.circuit_breaker.call(
                    self._gemini_generate,
                    f"{prompt}\n\nPlease respond with valid JSON only.",
                    GenerateContentConfig(temperature=0.1, response_mime_type="application/json"),
                )
                result = json.loads(text)
                ai_requests_counter.labels(model="gemini-json", status="success").inc()
                return result
            except Exception as e:
                logger.error(f"Gemini JSON response generation failed: {e}. Trying OpenAI fallback.")
                ai_requests_counter.labels(model="gemini-json", status="error").inc()

        # 2. Fallback to OpenAI if Gemini failed
        if self.openai_client:
            try:
                text = await self.openai_breaker.call(
                    self._openai_generate,
                    [
                        {"role": "system", "content": "You are a helpful assistant designed to output JSON."},
                        {"role": "user", "content": prompt},
                    ],
                    response_format={"type": "json_object"},
                )
                result = json.loads(text or "{}")
                ai_requests_counter.labels(model="openai-json", status="success").inc()
                return result
            except Exception as e:
                logger.error(f"OpenAI JSON response generation failed: {e}")
                ai_requests_counter.labels(model="openai-json", status="error").inc()

        raise AIUnavailableError("No AI provider returned a JSON response.")

    # --- Intent classification ---

    async def classify_intent(self, messages: Sequence[ChatMessage]) -> IntentResult:
        user_messages = [m.content for m in messages if m.role == "user"]
        latest = user_messages[-1] if user_messages else ""
        mentions_cart = bool(CART_MENTION_PATTERN.search(latest))

        try:
            data = await self.get_ai_json_response(
                INTENT_CLASSIFICATION_PROMPT.format(user_messages="\n".join(user_messages))
            )
            if not isinstance(data, dict):
                raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        except Exception as e:
            logger.error(f"Intent classification failed: {e}")
            data = {}

        intent = data.get("intent")
        if intent not in VALID_INTENTS:
            intent = Intent.GENERAL_QUESTION.value
        if mentions_cart and intent != Intent.ABANDONED_CART.value:
            logger.info(f"Cart mention overrides classified intent '{intent}'.")
            intent = Intent.ABANDONED_CART.value

        return IntentResult(
            intent=intent,
            order_number=_optional_str(data.get("orderNumber")),
            product_query=_optional_str(data.get("productQuery")),
            customer_email=_optional_str(data.get("customerEmail")),
            complete_purchase=data.get("completePurchase") is True,
        )

    # --- FAQ matching ---

    def _faq_cache_key(self, query: str, faqs: Sequence[Faq], store_id: Optional[int]) -> str:
        digest = hashlib.sha256(
            "\n".join([query.strip().lower(), *(faq.question for faq in faqs)]).encode("utf-8")
        ).hexdigest()
        return f"faq_match:{store_id}:{digest}"

    async def match_faq(self, query: str, faqs: Sequence[Faq], store_id: Optional[int] = None) -> FaqMatch:
        """Returns the 0-based index of the FAQ that answers `query`, if any."""
        if not faqs:
            return FaqMatch(matched=False)

        cache_key = self._faq_cache_key(query, faqs, store_id)
        cached = await cache_service.get_json(cache_key)
        if cached is not None:
            try:
                return FaqMatch.model_validate(cached)
            except ValidationError:
                logger.warning(f"Ignoring malformed FAQ match cache entry {cache_key}")

        faq_list = "\n".join(f"{index}. {faq.question}" for index, faq in enumerate(faqs, start=1))
        try:
            data = await self.get_ai_json_response(FAQ_MATCH_PROMPT.format(query=query, faq_list=faq_list))
        except Exception as e:
            logger.error(f"FAQ matching failed: {e}")
            return FaqMatch(matched=False)

        if not isinstance(data, dict):
            data = {}
        match = FaqMatch(matched=False)
        faq_index = data.get("faqIndex")
        if data.get("matched") and isinstance(faq_index, int) and not isinstance(faq_index, bool) and 0 < faq_index <= len(faqs):
            confidence = data.get("confidence")
            match = FaqMatch(
                matched=True,
                faq_index=faq_index - 1,
                confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
            )

        await cache_service.set_json(cache_key, match.model_dump(), ttl=FAQ_CACHE_TTL_SECONDS)
        return match

    # --- Chat replies ---

    async def generate_chat_response(
        self,
        messages: Sequence[ChatMessage],
        store_data: Optional[Dict[str, Any]] = None,
        bot_settings: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generates the assistant's reply. Never raises; returns an apology on failure."""
        if not self.is_configured:
            logger.error("No AI provider configured; returning fallback response.")
            return strings.AI_FALLBACK_RESPONSE

        system_prompt = build_chat_system_prompt(store_data, bot_settings)
        customization = (bot_settings or {}).get("ai_customization") or {}
        temperature = creativity_to_temperature(customization.get("creativity"))

        if self.gemini_client:
            try:
                contents = [
                    {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
                    for m in messages if m.role != "system"
                ]
                text = await self.circuit_breaker.call(
                    self._gemini_generate,
                    contents,
                    GenerateContentConfig(system_instruction=system_prompt, temperature=temperature),
                )
                ai_requests_counter.labels(model="gemini", status="success").inc()
                return text or strings.AI_EMPTY_RESPONSE
            except Exception as e:
                logger.error(f"Gemini API call failed: {e}")
                ai_requests_counter.labels(model="gemini", status="error").inc()

        if self.openai_client:
            try:
                payload = [{"role": "system", "content": system_prompt}]
                payload.extend({"role": m.role, "content": m.content} for m in messages)
                text = await self.openai_breaker.call(self._openai_generate, payload, temperature=temperature)
                ai_requests_counter.labels(model="openai", status="success").inc()
                return text or strings.AI_EMPTY_RESPONSE
            except Exception as e:
                logger.error(f"OpenAI API call failed: {e}")
                ai_requests_counter.labels(model="openai", status="error").inc()

        return strings.AI_FALLBACK_RESPONSE


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value if value and value.lower() != "null" else None


# Globally accessible instance
ai_service = AIService()
