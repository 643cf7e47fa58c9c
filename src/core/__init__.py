from core.errors import log_error, user_friendly_message
from core.genai import get_file_search_store_name, get_genai_client
from core.langfuse import get_langfuse_client
from core.logging_middleware import LoggingMiddleware
from core.settings import Settings, get_settings, settings

__all__ = [
    "settings",
    "LoggingMiddleware",
    "get_settings",
    "Settings",
    "get_langfuse_client",
    "get_genai_client",
    "get_file_search_store_name",
    "log_error",
    "user_friendly_message",
]
