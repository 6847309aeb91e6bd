# app.py
# ------------------------------------------------------------
# 名刺スキャン → 確認・編集 → CSV / 一括メール (Streamlit + LangGraph)
# ------------------------------------------------------------
import streamlit as st

from config import configure_logging
from models import View
from ui import (
    init_session_state,
    render_email_view,
    render_key_prompt,
    render_review_view,
    render_scan_view,
)

st.set_page_config(page_title="名刺スキャン", page_icon="📇")
init_session_state()
configure_logging(st.session_state.settings.log_level)

st.title("📇 Business-Card Scanner")

view = st.session_state.view
if view == View.SCAN:
    render_scan_view()
elif view == View.REVIEW:
    render_review_view()
elif view == View.EMAIL:
    render_email_view()

# 解析で認証エラーになった場合もこの実行中にキー入力欄を出す
render_key_prompt()
