# errors.py
from enum import Enum
from typing import Optional


class BizcardError(Exception):
    """名刺取り込み処理で発生するエラーの基底クラス"""


class DecodeError(BizcardError):
    pass


class ConfigurationError(BizcardError):
    pass


class EmptyResponseError(BizcardError):
    pass


class MalformedResponseError(BizcardError):
    pass


class TransportReason(str, Enum):
    UNAUTHORIZED = "unauthorized"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK = "network"


class TransportError(BizcardError):
    def __init__(
        self,
        message: str,
        reason: TransportReason = TransportReason.NETWORK,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code

    @property
    def needs_credentials(self) -> bool:
        # 認証エラーのときだけ API キーの再入力を促す
        return self.reason is TransportReason.UNAUTHORIZED

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"[{self.status_code}] {base}"
        return base
