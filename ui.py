# ui.py
import logging
from typing import List

import streamlit as st

from config import load_settings
from contacts import ContactBook
from errors import (
    BizcardError,
    ConfigurationError,
    DecodeError,
    EmptyResponseError,
    MalformedResponseError,
    TransportError,
    TransportReason,
)
from export import CSV_MIME, export_filename, to_csv, to_dataframe
from graph import ScanPipeline
from models import CONTACT_FIELDS, Contact, RawImage, View
from ocr import ExtractionClient
from outreach import DEFAULT_BODY, DEFAULT_SUBJECT, NAME_TOKEN, compose_all, render, send_bulk

logger = logging.getLogger(__name__)

FIELD_LABELS = {
    "name": "氏名",
    "title": "役職",
    "company": "会社名",
    "email": "メールアドレス",
    "phone": "電話番号",
    "website": "Web サイト",
    "address": "住所",
    "linkedin": "LinkedIn",
    "notes": "メモ",
}


def describe_error(exc: BizcardError) -> str:
    if isinstance(exc, ConfigurationError):
        return "API キーが設定されていません。サイドバーからキーを入力してください。"
    if isinstance(exc, TransportError):
        if exc.reason is TransportReason.UNAUTHORIZED:
            return "API キーが拒否されました。正しいキーを入力し直してください。"
        if exc.reason is TransportReason.RATE_LIMITED:
            return "リクエストが多すぎます。しばらく待ってから再試行してください。"
        if exc.reason is TransportReason.PAYLOAD_TOO_LARGE:
            return "画像が大きすぎます。枚数を減らして再試行してください。"
        if exc.reason is TransportReason.TIMEOUT:
            return "解析がタイムアウトしました。再試行してください。"
        return f"通信エラー: {exc}"
    if isinstance(exc, DecodeError):
        return f"画像を読み込めませんでした: {exc}"
    if isinstance(exc, (EmptyResponseError, MalformedResponseError)):
        return f"解析結果を読み取れませんでした: {exc}"
    return f"解析に失敗しました: {exc}"


def init_session_state():
    if "settings" not in st.session_state:
        try:
            st.session_state.settings = load_settings()
        except ConfigurationError as exc:
            st.error(f"設定エラー: {exc}")
            st.stop()
    if "book" not in st.session_state: st.session_state.book = ContactBook()
    if "pipeline" not in st.session_state: st.session_state.pipeline = None
    if "view" not in st.session_state: st.session_state.view = View.SCAN
    if "files_from_camera" not in st.session_state: st.session_state.files_from_camera = []
    if "need_key" not in st.session_state: st.session_state.need_key = False
    if "pending_delete" not in st.session_state: st.session_state.pending_delete = None
    if "editing" not in st.session_state: st.session_state.editing = None
    if "uploader_key" not in st.session_state: st.session_state.uploader_key = 0


def go(view: View):
    st.session_state.view = view
    st.rerun()


def get_pipeline() -> ScanPipeline:
    settings = st.session_state.settings
    pipeline = st.session_state.pipeline
    # キーが変わったらクライアントを作り直す (一覧はそのまま)
    if pipeline is None or pipeline.client.api_key != settings.api_key:
        client = ExtractionClient(settings.api_key, model=settings.model, timeout=settings.timeout)
        pipeline = ScanPipeline(client, st.session_state.book, settings.max_width, settings.jpeg_quality)
        st.session_state.pipeline = pipeline
    return pipeline


def render_key_prompt():
    settings = st.session_state.settings
    with st.sidebar:
        st.subheader("🔑 API キー")
        if settings.has_api_key and not st.session_state.need_key:
            st.caption("接続済み")
            return
        key = st.text_input("OpenAI API キー", type="password", key="api_key_input")
        if st.button("接続") and key.strip():
            st.session_state.settings = settings.with_api_key(key)
            st.session_state.need_key = False
            st.rerun()


def clear_inputs():
    st.session_state.files_from_camera = []
    # file_uploader はキーを変えるとリセットされる
    st.session_state.uploader_key += 1


def render_upload_tabs() -> List[RawImage]:
    tab1, tab2 = st.tabs(["📁 ファイルアップロード", "📷 カメラで撮影"])

    with tab1:
        files = st.file_uploader(
            "名刺画像を選択（複数枚可）",
            type=["png", "jpg", "jpeg", "webp"],
            accept_multiple_files=True,
            key=f"card_files_{st.session_state.uploader_key}",
        ) or []

    with tab2:
        camera_img = st.camera_input("カメラで名刺を撮影", key=f"camera_image_{st.session_state.uploader_key}")
        if camera_img is not None and camera_img not in st.session_state.files_from_camera:
            st.session_state.files_from_camera.append(camera_img)
        if st.session_state.files_from_camera:
            st.write(f"撮影済み: {len(st.session_state.files_from_camera)}枚")
            if st.button("撮影画像をクリア"):
                st.session_state.files_from_camera = []
                st.rerun()

    return [
        RawImage(data=f.getvalue(), mime_hint=f.type or "", filename=f.name)
        for f in list(files) + st.session_state.files_from_camera
    ]


def run_scan(images: List[RawImage]) -> bool:
    pipeline = get_pipeline()
    try:
        with st.spinner("名刺を解析中..."):
            added = pipeline.run(images)
    except BizcardError as exc:
        logger.error("scan failed: %s", exc)
        if isinstance(exc, ConfigurationError) or (isinstance(exc, TransportError) and exc.needs_credentials):
            st.session_state.need_key = True
        st.error(describe_error(exc) + "\n\nうまくいかない場合は、鮮明な画像を 1 枚ずつ試してください。")
        return False
    st.toast(f"{len(added)} 件の連絡先を追加しました")
    return True


def render_scan_view():
    st.subheader("📷 名刺をスキャン")
    images = render_upload_tabs()
    busy = st.session_state.pipeline is not None and st.session_state.pipeline.busy
    if st.button("🖨️ 解析開始", disabled=not images or busy, type="primary"):
        if run_scan(images):
            clear_inputs()
            go(View.REVIEW)
    if len(st.session_state.book):
        if st.button(f"一覧へ ({len(st.session_state.book)} 件)"):
            go(View.REVIEW)


def render_edit_form(contact: Contact):
    with st.form(f"edit_{contact.id}"):
        cols = st.columns([1, 1])
        values = {}
        for i, f in enumerate(CONTACT_FIELDS):
            with cols[i % 2]:
                if f == "notes":
                    values[f] = st.text_area(FIELD_LABELS[f], getattr(contact, f))
                else:
                    values[f] = st.text_input(FIELD_LABELS[f], getattr(contact, f))
        save, cancel = st.columns(2)
        if save.form_submit_button("保存", type="primary"):
            st.session_state.book.update(contact.id, values)
            st.session_state.editing = None
            st.rerun()
        if cancel.form_submit_button("キャンセル"):
            st.session_state.editing = None
            st.rerun()


def render_delete_confirm(contact: Contact):
    st.warning(f"{contact.display_name} を削除しますか？")
    yes, no = st.columns(2)
    if yes.button("削除する", key=f"yes_{contact.id}"):
        st.session_state.book.delete(contact.id)
        st.session_state.pending_delete = None
        st.rerun()
    if no.button("やめる", key=f"no_{contact.id}"):
        st.session_state.pending_delete = None
        st.rerun()


def render_contact(contact: Contact):
    book: ContactBook = st.session_state.book
    label = f"{contact.display_name} - {contact.company or '会社名なし'}"
    if contact.is_edited:
        label += " ✏️ 編集済み"
    with st.expander(label, expanded=st.session_state.editing == contact.id):
        if book.duplicates_of(contact):
            st.caption("⚠️ 同じメールアドレスの連絡先が他にもあります")
        if st.session_state.editing == contact.id:
            render_edit_form(contact)
            return
        for f in CONTACT_FIELDS[1:]:
            value = getattr(contact, f)
            if value:
                st.markdown(f"**{FIELD_LABELS[f]}**: {value}")
        if st.session_state.pending_delete == contact.id:
            render_delete_confirm(contact)
            return
        edit, delete = st.columns(2)
        if edit.button("編集", key=f"edit_btn_{contact.id}"):
            st.session_state.editing = contact.id
            st.rerun()
        if delete.button("削除", key=f"delete_btn_{contact.id}"):
            st.session_state.pending_delete = contact.id
            st.rerun()


def render_review_view():
    book: ContactBook = st.session_state.book
    head, more = st.columns([3, 1])
    head.subheader(f"📚 抽出した連絡先 ({len(book)})")
    if more.button("追加でスキャン"):
        go(View.SCAN)

    if not len(book):
        st.info("まだ連絡先がありません。")
        return

    for contact in book:
        render_contact(contact)

    st.divider()
    st.dataframe(to_dataframe(book), use_container_width=True, hide_index=True)

    export, email = st.columns(2)
    with export:
        st.download_button(
            "⬇️ CSV エクスポート",
            data=to_csv(book),
            file_name=export_filename(),
            mime=CSV_MIME,
        )
    if email.button("✉️ 一括メール"):
        go(View.EMAIL)


def render_email_view():
    book: ContactBook = st.session_state.book
    contacts = book.contacts
    if st.button("← 戻る"):
        go(View.REVIEW)

    st.subheader("✉️ 一括メール")
    st.caption(f"宛先: {len(contacts)} 件")
    subject = st.text_input("件名", DEFAULT_SUBJECT)
    st.caption(f"`{NAME_TOKEN}` は各連絡先の名 (ファーストネーム) に置き換わります。")
    body = st.text_area("本文テンプレート", DEFAULT_BODY, height=220)

    if contacts:
        with st.container(border=True):
            st.caption("プレビュー (1 件目)")
            st.markdown(f"**{render(subject, contacts[0])}**")
            st.text(render(body, contacts[0]))

    if st.button(f"{len(contacts)} 件送信", disabled=not contacts, type="primary"):
        bar = st.progress(0.0, text="送信中...")
        sent = send_bulk(
            compose_all(subject, body, contacts),
            progress=lambda n, total: bar.progress(n / total, text=f"送信中... {n}/{total}"),
        )
        st.success(f"{sent} 件のメールを送信しました！")
