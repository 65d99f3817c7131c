import base64
import logging
from typing import List, NamedTuple, Optional, Protocol

import requests

from .. import config
from ..exceptions import EnrichmentError


class Enrichment(NamedTuple):
    keywords: List[str]
    caption: Optional[str]


NO_ENRICHMENT = Enrichment([], None)


class TagEnricher(Protocol):
    def enrich(self, image_bytes: bytes) -> Enrichment:
        ...


def normalize_keywords(text: Optional[str]) -> List[str]:
    """'Beach, Sunset, Family' -> ['beach', 'family', 'sunset']"""
    if not text:
        return []
    words = {item.strip().lower() for item in text.split(",")}
    return sorted(word for word in words if word)


class OllamaTagEnricher:
    """
    Asks a vision model served by Ollama for keywords and a caption.

    The two requests are independent: if one fails the other is still used.
    Nothing here raises; failures are logged and degrade to no enrichment.
    """

    def __init__(self,
                 base_url: str = config.DEFAULT_OLLAMA_URL,
                 model: str = config.DEFAULT_MODEL,
                 timeout: float = config.DEFAULT_ENRICH_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.api_url = base_url.rstrip("/") + "/api/generate"
        self.model = model
        self.timeout = timeout
        self.http = session or requests

    def enrich(self, image_bytes: bytes) -> Enrichment:
        image_b64 = base64.b64encode(image_bytes).decode("ascii")

        keywords: List[str] = []
        try:
            keywords = normalize_keywords(self._generate(config.KEYWORDS_PROMPT, image_b64))
        except EnrichmentError as e:
            logging.warning(f"Keyword request failed: {e}")

        caption = None
        try:
            caption = self._generate(config.CAPTION_PROMPT, image_b64).strip() or None
        except EnrichmentError as e:
            logging.warning(f"Caption request failed: {e}")

        return Enrichment(keywords, caption)

    def _generate(self, prompt: str, image_b64: str) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "images": [image_b64],
            "stream": False,
        }
        try:
            response = self.http.post(self.api_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.Timeout as e:
            raise EnrichmentError(f"timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise EnrichmentError(str(e)) from e
        except ValueError as e:
            raise EnrichmentError(f"invalid JSON from {self.api_url}") from e

        text = result.get("response") if isinstance(result, dict) else None
        if not isinstance(text, str):
            raise EnrichmentError("response field missing from model output")
        return text
