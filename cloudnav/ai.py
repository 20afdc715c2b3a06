"""
AI-assisted link descriptions.

Thin client for the description generator: given a link title and URL it
asks either Google Gemini or any OpenAI-compatible chat endpoint for a short
description. The bulk helper fills in links that have none, committing each
result through the sync controller.
"""
import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, Any, Optional

import requests
from tqdm import tqdm

from cloudnav import constants
from cloudnav.db import LocalStore
from cloudnav.exceptions import AuthRequiredError, CloudNavError

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_BASE_URL = "https://api.openai.com/v1"

PROMPT_TEMPLATE = (
    "Write a concise description (one sentence, at most 20 words) of the "
    "website \"{title}\" at {url}. Reply with the description only."
)


class AIError(CloudNavError):
    """The description generator failed or returned nothing usable."""
    pass


@dataclass
class AIConfig:
    """
    AI-assist configuration record.

    Attributes:
        provider: "gemini" or "openai" (any OpenAI-compatible endpoint)
        api_key: Provider API key
        base_url: Endpoint root override; empty uses the provider default
        model: Model name
    """
    provider: str = constants.DEFAULT_AI_PROVIDER
    api_key: str = ""
    base_url: str = ""
    model: str = constants.DEFAULT_AI_MODEL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "apiKey": self.api_key,
            "baseUrl": self.base_url,
            "model": self.model,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIConfig":
        defaults = cls()
        return cls(
            provider=str(data.get("provider") or defaults.provider),
            api_key=str(data.get("apiKey") or ""),
            base_url=str(data.get("baseUrl") or ""),
            model=str(data.get("model") or defaults.model),
        )

    @classmethod
    def load(cls, store: LocalStore) -> "AIConfig":
        """Load the stored record; missing or corrupt records yield defaults."""
        record = store.load_record(constants.AI_CONFIG_KEY)
        if not record:
            return cls(api_key=os.environ.get("CLOUDNAV_AI_API_KEY", ""))
        return cls.from_dict(record)

    def save(self, store: LocalStore):
        store.save_record(constants.AI_CONFIG_KEY, self.to_dict())


def generate_description(title: str, url: str, config: AIConfig, timeout: int = 30) -> str:
    """
    Ask the configured provider for a short description of a link.

    Args:
        title: Link title
        url: Link URL
        config: Provider configuration
        timeout: Request timeout in seconds

    Returns:
        The description text

    Raises:
        AIError: On transport errors, non-2xx responses or empty answers
    """
    if not config.api_key:
        raise AIError("No API key configured")

    prompt = PROMPT_TEMPLATE.format(title=title, url=url)

    try:
        if config.provider == "gemini":
            base_url = (config.base_url or GEMINI_BASE_URL).rstrip("/")
            response = requests.post(
                f"{base_url}/models/{config.model}:generateContent",
                params={"key": config.api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=timeout
            )
            response.raise_for_status()
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        else:
            base_url = (config.base_url or OPENAI_BASE_URL).rstrip("/")
            response = requests.post(
                f"{base_url}/chat/completions",
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {config.api_key}"
                },
                json={
                    "model": config.model,
                    "messages": [{"role": "user", "content": prompt}],
                },
                timeout=timeout
            )
            response.raise_for_status()
            data = response.json()
            text = data["choices"][0]["message"]["content"]
    except requests.RequestException as e:
        raise AIError(f"Error calling {config.provider} endpoint: {e}") from e
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise AIError(f"Unexpected response from {config.provider}: {e}") from e

    text = (text or "").strip().strip('"')
    if not text:
        raise AIError("Empty description returned")
    return text


def fill_missing_descriptions(
    controller,
    config: AIConfig,
    generator: Callable[[str, str, AIConfig], str] = generate_description,
    should_stop: Optional[Callable[[], bool]] = None,
    show_progress: bool = False
) -> int:
    """
    Generate descriptions for every link that has none.

    Each generated description is committed on its own, so a stop or a
    crash keeps what was already done. Failures for a link are logged and
    the link is skipped; nothing is retried.

    Args:
        controller: SyncController holding the links
        config: Provider configuration
        generator: Description generator (title, url, config) -> text
        should_stop: Polled before each link; returning True ends the run
        show_progress: Display a tqdm progress bar

    Returns:
        Number of links that received a description

    Raises:
        ValueError: If no API key is configured
        AuthRequiredError: If the controller holds no credential
    """
    if not config.api_key:
        raise ValueError("Configure an API key first")
    if not controller.is_authenticated:
        raise AuthRequiredError()

    missing = [l for l in controller.snapshot.links if not l.description]
    if not missing:
        logger.info("All links already have a description")
        return 0

    updated = 0
    for link in tqdm(missing, desc="Describing links", disable=not show_progress):
        if should_stop and should_stop():
            logger.info("Description generation stopped")
            break
        try:
            description = generator(link.title, link.url, config)
        except Exception as e:
            logger.error(f"Failed to generate description for {link.title}: {e}")
            continue

        try:
            controller.edit_link(link.id, description=description)
        except KeyError:
            logger.debug(f"Link {link.id} was removed during generation")
            continue
        updated += 1

    return updated
