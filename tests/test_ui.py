import pytest
from streamlit.testing.v1 import AppTest

from config import Settings
from errors import (
    ConfigurationError,
    DecodeError,
    EmptyResponseError,
    MalformedResponseError,
    TransportError,
    TransportReason,
)
from ui import describe_error


@pytest.mark.parametrize(
    "error, expected",
    [
        (ConfigurationError("no key"), "API キーが設定されていません"),
        (TransportError("x", TransportReason.UNAUTHORIZED, 401), "API キーが拒否されました"),
        (TransportError("x", TransportReason.RATE_LIMITED, 429), "しばらく待って"),
        (TransportError("x", TransportReason.PAYLOAD_TOO_LARGE, 413), "画像が大きすぎます"),
        (TransportError("x", TransportReason.TIMEOUT), "タイムアウト"),
        (TransportError("offline"), "通信エラー"),
        (DecodeError("bad"), "画像を読み込めませんでした"),
        (EmptyResponseError("empty"), "解析結果を読み取れませんでした"),
        (MalformedResponseError("bad json"), "解析結果を読み取れませんでした"),
    ],
)
def test_describe_error(error, expected):
    assert expected in describe_error(error)


def test_transport_error_str_includes_status():
    assert str(TransportError("denied", TransportReason.UNAUTHORIZED, 401)) == "[401] denied"
    assert str(TransportError("offline")) == "offline"


def _app():
    at = AppTest.from_file("../app.py", default_timeout=30)
    at.session_state["settings"] = Settings(api_key="sk-rejected")
    return at


def test_key_prompt_hidden_while_connected():
    at = _app()
    at.run()
    assert not at.exception
    assert len(at.sidebar.text_input) == 0


def test_key_prompt_shown_after_rejected_key():
    at = _app()
    at.session_state["need_key"] = True
    at.run()
    assert not at.exception
    assert at.sidebar.text_input[0].label == "OpenAI API キー"
