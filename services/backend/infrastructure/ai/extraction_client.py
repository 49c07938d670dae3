"""
AI text-extraction collaborator
OpenAI-compatible chat API (OpenRouter by default)
"""
from typing import List, Optional

import structlog
from openai import AsyncOpenAI

from config import Settings

logger = structlog.get_logger()

_EXCLUDED_MODEL_MARKERS = ("vision", "experimental")


class ExtractionClient:
    def __init__(
        self,
        client: AsyncOpenAI,
        fallback_models: List[str],
        model_keywords: List[str],
        max_candidates: int = 6,
        temperature: float = 0.1,
    ):
        self.client = client
        self.fallback_models = list(fallback_models)
        self.model_keywords = [keyword.lower() for keyword in model_keywords]
        self.max_candidates = max_candidates
        self.temperature = temperature

    async def candidate_models(self) -> List[str]:
        """Models this key may use, discovered from the provider; fallback list otherwise"""
        discovered: List[str] = []
        try:
            page = await self.client.models.list()
            for model in page.data:
                name = model.id.lower()
                if not any(keyword in name for keyword in self.model_keywords):
                    continue
                if any(marker in name for marker in _EXCLUDED_MODEL_MARKERS):
                    continue
                discovered.append(model.id)
        except Exception as e:
            logger.warning("model_discovery_failed", error=str(e))

        if discovered:
            logger.info("models_discovered", models=discovered[: self.max_candidates])

        return (discovered or self.fallback_models)[: self.max_candidates]

    async def complete(self, model: str, instructions: str, source_text: str) -> str:
        response = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": instructions},
                {"role": "user", "content": f"HIER IST DER TEXT ZUR ANALYSE:\n\n{source_text}"},
            ],
            temperature=self.temperature,
        )
        return response.choices[0].message.content or ""


def build_extraction_client(settings: Settings) -> Optional[ExtractionClient]:
    if not settings.openai_api_key:
        logger.info("extraction_disabled", reason="openai_api_key not configured")
        return None

    client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
    return ExtractionClient(
        client,
        fallback_models=settings.extraction_fallback_models,
        model_keywords=settings.extraction_model_keywords,
        max_candidates=settings.extraction_max_candidates,
        temperature=settings.extraction_temperature,
    )
