from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from google.genai import types

from core.errors import ValidationError
from schema.data_sources import ChatSource, SelectedDataSource, UIMessage
from service.file_search import FILE_NAME_METADATA_KEY

CITATION_INSTRUCTION = "Also give the citations/sources from where you are giving the response from"

SYSTEM_PROMPT = """
You are a helpful AI assistant with access to uploaded documents through file search.

Your role is to:
1. Answer user questions accurately based on the information from the uploaded files
2. Provide clear, concise, and well-structured responses
3. Use the file search tool to find relevant information from the uploaded documents
4. If information is not available in the uploaded files, clearly state that you don't have that information

Guidelines:
- Be direct and informative
- Cite specific information from the documents when possible
- If you're unsure or the information isn't in the files, say so
- Provide step-by-step explanations when appropriate
- Use markdown formatting for better readability

When using file search results:
- Reference the specific documents or sections you found the information in
- Provide accurate quotes or summaries from the files
- If multiple files contain relevant information, synthesize them clearly
""".strip()


def build_prompt(messages: Sequence[UIMessage]) -> str:
    """Join the text parts of the latest message and append the citation request."""
    if not messages:
        raise ValidationError("At least one message is required")
    parts = [*messages[-1].text_parts(), CITATION_INSTRUCTION]
    return "\n".join(parts)


def escape_filter_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_metadata_filter(selections: Sequence[SelectedDataSource] | None) -> str | None:
    """OR of exact ``file_name`` matches, one clause per selection, in order."""
    if not selections:
        return None
    clauses = [
        f'{FILE_NAME_METADATA_KEY} = "{escape_filter_value(selection.name)}"'
        for selection in selections
    ]
    return " OR ".join(clauses)


def build_file_search_tool(
    store_name: str, selections: Sequence[SelectedDataSource] | None = None
) -> types.Tool:
    file_search_kwargs: dict[str, Any] = {"file_search_store_names": [store_name]}
    metadata_filter = build_metadata_filter(selections)
    if metadata_filter:
        file_search_kwargs["metadata_filter"] = metadata_filter
    return types.Tool(file_search=types.FileSearch(**file_search_kwargs))


def build_generation_config(
    store_name: str, selections: Sequence[SelectedDataSource] | None = None
) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        system_instruction=SYSTEM_PROMPT,
        tools=[build_file_search_tool(store_name, selections)],
    )


def extract_sources(chunk: Any) -> list[ChatSource]:
    """Pull retrieved-document citations out of a streamed response chunk."""
    sources: list[ChatSource] = []
    for candidate in getattr(chunk, "candidates", None) or []:
        grounding = getattr(candidate, "grounding_metadata", None)
        for grounding_chunk in getattr(grounding, "grounding_chunks", None) or []:
            context = getattr(grounding_chunk, "retrieved_context", None)
            if context is None:
                continue
            source = ChatSource(
                title=getattr(context, "title", None),
                uri=getattr(context, "uri", None),
                text=getattr(context, "text", None),
            )
            if not source.is_empty():
                sources.append(source)
    return sources
