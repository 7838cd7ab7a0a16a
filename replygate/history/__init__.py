"""Conversation history storage and keyword-continuity chunking."""

from replygate.history.chunker import (
    ChunkingConfig,
    ConversationChunk,
    chunk_by_keyword_continuity,
    estimate_tokens,
    extract_keywords,
    keyword_overlap,
    message_tokens,
    process_with_chunking,
    select_messages,
    truncate_message,
)
from replygate.history.models import StoredMessage
from replygate.history.store import HistoryStore

__all__ = [
    "ChunkingConfig",
    "ConversationChunk",
    "HistoryStore",
    "StoredMessage",
    "chunk_by_keyword_continuity",
    "estimate_tokens",
    "extract_keywords",
    "keyword_overlap",
    "message_tokens",
    "process_with_chunking",
    "select_messages",
    "truncate_message",
]
