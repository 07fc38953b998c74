import logging
from typing import Mapping, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_URL = 'https://openrouter.ai/api/v1/chat/completions'
DEFAULT_MODEL = 'google/gemini-2.5-flash'

SYSTEM_PROMPT = (
    'You are a creative game hint generator. Generate EXACTLY ONE WORD that serves as a '
    'subtle hint for the given element within the theme context. The word should be related '
    'but not too obvious. NEVER use adult content. Respond with ONLY the single word, nothing else.'
)


class WhispClient:
    """One-word hint generator backed by an OpenAI-compatible chat endpoint."""

    def __init__(self, api_key: str = '', url: str = DEFAULT_URL, model: str = DEFAULT_MODEL,
                 timeout: float = 10, fallback: str = 'story', session=None):
        self.api_key = (api_key or '').strip()
        self.url = url or DEFAULT_URL
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout
        self.fallback = fallback
        self.http = session or requests
        self.can_generate = bool(self.api_key)

    @classmethod
    def from_config(cls, config: Mapping) -> 'WhispClient':
        return cls(
            api_key=config.get('WHISP_API_KEY') or '',
            url=config.get('WHISP_API_URL') or DEFAULT_URL,
            model=config.get('WHISP_MODEL') or DEFAULT_MODEL,
            timeout=float(config.get('WHISP_TIMEOUT_SEC', 10)),
            fallback=config.get('WHISP_FALLBACK') or 'story',
        )

    def build_messages(self, element_name: str, theme_name: Optional[str]):
        theme = theme_name or 'general'
        return [
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {
                'role': 'user',
                'content': (
                    f'Generate a one-word hint for the element "{element_name}" within the theme '
                    f'"{theme}". The hint should be creative and help the storyteller craft their story.'
                ),
            },
        ]

    def generate(self, element_name: Optional[str], theme_name: Optional[str] = None) -> str:
        """Return a hint word, or the fallback when generation is unavailable."""
        if not element_name:
            return self.fallback
        if not self.can_generate:
            logger.debug("WHISP_API_KEY not set; using fallback whisp.")
            return self.fallback

        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }
        payload = {'model': self.model, 'messages': self.build_messages(element_name, theme_name)}
        try:
            response = self.http.post(self.url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            answer = response.json()['choices'][0]['message']['content']
        except requests.RequestException as exc:
            logger.warning("Whisp request failed: %s", exc)
            return self.fallback
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("Whisp response was malformed: %s", exc)
            return self.fallback

        words = (answer or '').strip().split()
        if not words:
            logger.warning("Whisp provider returned an empty hint.")
            return self.fallback
        return words[0].strip('.,!?"\'')[:120] or self.fallback
