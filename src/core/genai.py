"""Factories for the Gemini SDK client and the file search store name.

Configuration is checked here, at first use, rather than at startup.
"""

from __future__ import annotations

import logging

from google import genai

from core.errors import StorageNotConfiguredError
from core.settings import settings

logger = logging.getLogger(__name__)


def get_genai_client() -> genai.Client:
    api_key = settings.GOOGLE_GENERATIVE_AI_API_KEY
    if api_key is None or not api_key.get_secret_value():
        raise StorageNotConfiguredError(
            "GOOGLE_GENERATIVE_AI_API_KEY environment variable is not set. "
            "Please configure your Google AI API key in the environment variables."
        )
    return genai.Client(api_key=api_key.get_secret_value())


def get_file_search_store_name() -> str:
    store_name = settings.FILE_SEARCH_STORE_NAME
    if not store_name:
        raise StorageNotConfiguredError(
            "FILE_SEARCH_STORE_NAME environment variable is not set. "
            "Please create a file search store and set its resource name in your environment variables."
        )
    logger.debug("Using file search store %s", store_name)
    return store_name
