"""
Channel history fetching and text rendering.

A channel file's content is its history rendered one message per line,
oldest first:

    alice: hi
    bob: hello https://cdn.example/cat.png

Paging walks backward from the newest message using the oldest id seen
as the `before` cursor and stops on a short page (start of history) or
after `max_pages` pages.
"""

import logging
from typing import Iterable, Optional

from .models import Message

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


async def fetch_history(client, channel_id: int, page_size: int, max_pages: int) -> list[Message]:
    """Fetch up to `max_pages` pages of history. Returns messages oldest first."""
    pages: list[list[Message]] = []
    before: Optional[int] = None

    for _ in range(max_pages):
        page = await client.fetch_messages(channel_id, before=before, limit=page_size)
        if page:
            # Normalize to newest-first so the cursor is always the oldest id
            page = sorted(page, key=lambda m: m.id, reverse=True)
            pages.append(page)
            before = page[-1].id
        if len(page) < page_size:
            break
    else:
        log.info(f"Channel {channel_id}: stopped after {max_pages} pages, older history omitted")

    messages = [m for page in pages for m in page]
    messages.reverse()
    log.debug(f"Channel {channel_id}: fetched {len(messages)} messages in {len(pages)} pages")
    return messages


def render_message(message: Message, show_timestamps: bool = False) -> str:
    """Render a single message as one line."""
    body = message.body
    if message.attachments:
        urls = " ".join(message.attachments)
        body = f"{body} {urls}" if body else urls

    prefix = ""
    if show_timestamps and message.timestamp is not None:
        prefix = f"[{message.timestamp.strftime(TIMESTAMP_FORMAT)}] "

    return f"{prefix}{message.author}: {body}\n"


def render_history(messages: Iterable[Message], show_timestamps: bool = False) -> bytes:
    """Render a chronological message list as file content."""
    return "".join(render_message(m, show_timestamps) for m in messages).encode("utf-8")
