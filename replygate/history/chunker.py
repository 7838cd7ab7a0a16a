"""
Keyword-continuity chunking for conversation history.

Messages are grouped into chunks that share keywords; a chunk only breaks
when a long time gap coincides with a topic change. Chunks are then
selected newest-first until the token budget is spent.
"""

import math
import re
from dataclasses import dataclass, field

from replygate.history.models import StoredMessage

STOPWORDS = frozenset("""
a an the this that these those
i you he she it we they me him her us them
my your his its our their mine yours ours theirs
myself yourself himself herself itself ourselves themselves
in on at to for of with by from up about into over after under between out against during
and but or nor so yet both either neither
is are was were be been being am have has had having do does did doing
will would could should may might must shall can
get got getting make made making go going went gone come came coming
take took taken taking know knew known knowing think thought thinking
see saw seen seeing want wanted wanting use used using find found finding
give gave given giving tell told telling say said saying look looked looking
just also now then here there when where why how
very really actually probably maybe always never often
still already ever even only again back
good great nice bad new old big small same different
other more most some any all many much few little
first last next own right sure
what which who whom whose
yeah yes yep yup no nope nah okay ok thanks thank please sorry well like
thing things stuff hey hello hi bye lol haha hehe wow cool
today tomorrow yesterday time day week month year
let lets dont didnt doesnt wont cant couldnt wouldnt shouldnt
isnt arent wasnt werent hasnt havent hadnt
something anything nothing everything someone anyone everyone nobody
""".split())

_NON_WORD = re.compile(r"[^\w\s']")

TRUNCATION_MARKER = "... [truncated]"


@dataclass
class ChunkingConfig:
    """Chunk boundary and selection limits."""
    gap_minutes: float = 10
    min_keyword_overlap: float = 0.25
    min_word_length: int = 4
    max_tokens: int = 1500
    min_messages: int = 5
    max_messages: int = 40
    max_message_length: int = 500


@dataclass
class ConversationChunk:
    """A run of messages on the same thread."""
    messages: list[StoredMessage]
    keywords: set[str] = field(default_factory=set)

    @property
    def start_time(self) -> float:
        return self.messages[0].timestamp if self.messages else 0.0

    @property
    def end_time(self) -> float:
        return self.messages[-1].timestamp if self.messages else 0.0

    @property
    def token_count(self) -> int:
        return sum(message_tokens(m.content) for m in self.messages)


def estimate_tokens(text: str) -> int:
    """Roughly four characters per token."""
    return math.ceil(len(text) / 4)


def message_tokens(text: str) -> int:
    """Token estimate for one message including role/formatting overhead."""
    return estimate_tokens(text) + 10


def extract_keywords(text: str, min_word_length: int = 4) -> set[str]:
    normalized = _NON_WORD.sub(" ", text.lower())
    keywords = set()
    for word in normalized.split():
        word = word.replace("'", "")
        if len(word) >= min_word_length and word not in STOPWORDS:
            keywords.add(word)
    return keywords


def keyword_overlap(first: set[str], second: set[str]) -> float:
    """Shared keywords relative to the smaller set (0 when either is empty)."""
    if not first or not second:
        return 0.0
    return len(first & second) / min(len(first), len(second))


def chunk_by_keyword_continuity(
    messages: list[StoredMessage],
    config: ChunkingConfig | None = None,
) -> list[ConversationChunk]:
    """
    Group chronological messages into chunks.

    A new chunk starts only when the gap to the previous message exceeds
    gap_minutes AND keyword overlap with the current chunk is below
    min_keyword_overlap.
    """
    config = config or ChunkingConfig()
    gap_seconds = config.gap_minutes * 60

    chunks: list[ConversationChunk] = []
    current = ConversationChunk(messages=[])

    for message in messages:
        keywords = extract_keywords(message.content, config.min_word_length)
        if current.messages:
            gap = message.timestamp - current.messages[-1].timestamp
            overlap = keyword_overlap(current.keywords, keywords)
            if gap > gap_seconds and overlap < config.min_keyword_overlap:
                chunks.append(current)
                current = ConversationChunk(messages=[])

        current.messages.append(message)
        current.keywords |= keywords

    if current.messages:
        chunks.append(current)
    return chunks


def select_messages(
    chunks: list[ConversationChunk],
    config: ChunkingConfig | None = None,
) -> list[StoredMessage]:
    """
    Fill the token budget from the newest chunk backwards.

    Whole chunks are taken while they fit. A chunk that does not fit is
    taken partially (newest messages first) only while fewer than
    min_messages are selected. Never exceeds max_messages.
    """
    config = config or ChunkingConfig()
    selected: list[StoredMessage] = []
    tokens = 0

    for chunk in reversed(chunks):
        chunk_tokens = chunk.token_count
        if tokens + chunk_tokens <= config.max_tokens:
            room = config.max_messages - len(selected)
            taken = chunk.messages[-room:] if room < len(chunk.messages) else chunk.messages
            selected[:0] = taken
            tokens += sum(message_tokens(m.content) for m in taken)
        elif len(selected) < config.min_messages:
            for message in reversed(chunk.messages):
                cost = message_tokens(message.content)
                if tokens + cost > config.max_tokens and len(selected) >= config.min_messages:
                    break
                selected.insert(0, message)
                tokens += cost
                if len(selected) >= config.max_messages:
                    break

        if len(selected) >= config.max_messages:
            break

    return selected


def truncate_message(content: str, max_length: int) -> str:
    if len(content) <= max_length:
        return content
    return content[: max_length - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def process_with_chunking(
    messages: list[StoredMessage],
    now: float,
    max_age_seconds: float | None,
    config: ChunkingConfig | None = None,
) -> list[StoredMessage]:
    """
    Age-filter, chunk, select and truncate a chronological message list.

    Args:
        messages: Messages oldest first.
        now: Current unix time.
        max_age_seconds: Drop messages older than this; None keeps all.
        config: Chunking limits.

    Returns:
        Selected messages, oldest first.
    """
    config = config or ChunkingConfig()
    if max_age_seconds:
        cutoff = now - max_age_seconds
        messages = [m for m in messages if m.timestamp > cutoff]
    if not messages:
        return []

    chunks = chunk_by_keyword_continuity(messages, config)
    return [
        m.with_content(truncate_message(m.content, config.max_message_length))
        for m in select_messages(chunks, config)
    ]
