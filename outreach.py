# outreach.py
import logging
from typing import Callable, Iterable, List, Optional

from models import Contact, OutgoingMessage

logger = logging.getLogger(__name__)

NAME_TOKEN = "{name}"
DEFAULT_SUBJECT = "Great meeting you!"
DEFAULT_BODY = (
    "Hi {name},\n\n"
    "It was a pleasure meeting you recently. I'd love to stay in touch and "
    "discuss how we might collaborate.\n\n"
    "Best regards,\n[My Name]"
)

Sender = Callable[[OutgoingMessage], None]
Progress = Callable[[int, int], None]


def first_name(name: str) -> str:
    name = (name or "").strip()
    return name.split(" ", 1)[0] if name else ""


def render(template: str, contact: Contact) -> str:
    # 置換するのは最初の {name} だけ
    return template.replace(NAME_TOKEN, first_name(contact.name), 1)


def compose_all(subject: str, body: str, contacts: Iterable[Contact]) -> List[OutgoingMessage]:
    return [
        OutgoingMessage(
            contact_id=c.id,
            to=c.email,
            subject=render(subject, c),
            body=render(body, c),
        )
        for c in contacts
    ]


def log_sender(message: OutgoingMessage) -> None:
    """実際には送信しない (配信は外部サービスの担当)"""
    logger.info("would send %r to %s", message.subject, message.to or "(no email)")


def send_bulk(
    messages: List[OutgoingMessage],
    sender: Sender = log_sender,
    progress: Optional[Progress] = None,
) -> int:
    total = len(messages)
    sent = 0
    for message in messages:
        sender(message)
        sent += 1
        if progress is not None:
            progress(sent, total)
    logger.info("bulk send finished: %d/%d", sent, total)
    return sent
