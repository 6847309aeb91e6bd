# models.py
from dataclasses import dataclass
from enum import Enum
from typing import List, TypedDict


# 名刺から抽出する 9 項目 (CSV 列順と同じ)
CONTACT_FIELDS = (
    "name",
    "title",
    "company",
    "email",
    "phone",
    "website",
    "address",
    "linkedin",
    "notes",
)


class ContactFields(TypedDict, total=False):
    name: str
    title: str
    company: str
    email: str
    phone: str
    website: str
    address: str
    linkedin: str
    notes: str


@dataclass
class Contact:
    id: str
    name: str = ""
    title: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    website: str = ""
    address: str = ""
    linkedin: str = ""
    notes: str = ""
    is_edited: bool = False

    def field_values(self) -> ContactFields:
        return {f: getattr(self, f) for f in CONTACT_FIELDS}

    @property
    def display_name(self) -> str:
        return self.name or "(名前なし)"


@dataclass(frozen=True)
class ImagePayload:
    """正規化済み画像 (エンコード済みバイト列 + MIME タイプ)"""
    data: bytes
    mime_type: str
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class RawImage:
    data: bytes
    mime_hint: str = ""
    filename: str = ""


@dataclass(frozen=True)
class OutgoingMessage:
    contact_id: str
    to: str
    subject: str
    body: str


class View(str, Enum):
    SCAN = "scan"
    REVIEW = "review"
    EMAIL = "email"


class State(TypedDict, total=False):
    images: List[RawImage]              # 入力画像 (撮影 / アップロード)
    payloads: List[ImagePayload]        # 正規化済み
    records: List[ContactFields]        # 抽出結果 (検証済み)
    contacts: List[Contact]             # 今回追加された連絡先
