# contacts.py
import logging
import uuid
from typing import Callable, Iterable, Iterator, List, Mapping, Optional

from models import CONTACT_FIELDS, Contact, ContactFields

logger = logging.getLogger(__name__)


def _clean(fields: Mapping[str, object]) -> ContactFields:
    out: ContactFields = {}
    for f in CONTACT_FIELDS:
        value = fields.get(f)
        out[f] = value.strip() if isinstance(value, str) else ""
    return out


class ContactBook:
    """セッション中の連絡先一覧 (取り込み順を保持)"""

    def __init__(self, id_factory: Optional[Callable[[], str]] = None) -> None:
        self._contacts: List[Contact] = []
        self._issued: set = set()
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)

    def __len__(self) -> int:
        return len(self._contacts)

    def __iter__(self) -> Iterator[Contact]:
        return iter(list(self._contacts))

    @property
    def contacts(self) -> List[Contact]:
        return list(self._contacts)

    def _mint_id(self) -> str:
        # 削除済みの ID も含めて再利用しない
        cid = self._new_id()
        while cid in self._issued:
            cid = self._new_id()
        self._issued.add(cid)
        return cid

    def get(self, contact_id: str) -> Optional[Contact]:
        for c in self._contacts:
            if c.id == contact_id:
                return c
        return None

    def ingest(self, records: Iterable[Mapping[str, object]]) -> List[Contact]:
        added = [Contact(id=self._mint_id(), is_edited=False, **_clean(r)) for r in records]
        self._contacts.extend(added)
        logger.info("ingested %d contact(s), %d total", len(added), len(self._contacts))
        return added

    def update(self, contact_id: str, fields: Mapping[str, object]) -> None:
        contact = self.get(contact_id)
        if contact is None:
            logger.debug("update skipped, %s no longer exists", contact_id)
            return
        for f, value in _clean(fields).items():
            setattr(contact, f, value)
        contact.is_edited = True
        logger.debug("updated %s", contact_id)

    def delete(self, contact_id: str) -> None:
        before = len(self._contacts)
        self._contacts = [c for c in self._contacts if c.id != contact_id]
        if len(self._contacts) != before:
            logger.debug("deleted %s", contact_id)

    def duplicates_of(self, contact: Contact) -> List[Contact]:
        """同じメールアドレスを持つ他の連絡先 (統合はしない)"""
        email = contact.email.strip().lower()
        if not email:
            return []
        return [
            c for c in self._contacts
            if c.id != contact.id and c.email.strip().lower() == email
        ]
