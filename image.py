# image.py
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

from config import DEFAULT_JPEG_QUALITY, DEFAULT_MAX_WIDTH
from errors import DecodeError
from models import ImagePayload, RawImage

logger = logging.getLogger(__name__)

OUTPUT_MIME = "image/jpeg"


def target_size(width: int, height: int, max_width: int = DEFAULT_MAX_WIDTH):
    """幅だけを制限する。拡大はしない。"""
    if width <= max_width:
        return width, height
    return max_width, max(1, round(height * max_width / width))


def normalize(
    data: bytes,
    mime_hint: str = "",
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: int = DEFAULT_JPEG_QUALITY,
    name: str = "",
) -> ImagePayload:
    label = name or mime_hint or "unknown type"
    if not data:
        raise DecodeError(f"image is empty ({label})")
    try:
        with Image.open(io.BytesIO(data)) as src:
            src.load()
            # スマホ撮影の回転情報を反映
            img = ImageOps.exif_transpose(src)
    except Image.DecompressionBombError as exc:
        # 画素数が Pillow の上限を超える画像は開かない
        raise DecodeError(f"image is too large to decode ({label}): {exc}") from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError(f"cannot decode image ({label}): {exc}") from exc

    size = target_size(img.width, img.height, max_width)
    if size != img.size:
        img = img.resize(size, Image.Resampling.LANCZOS)
    if img.mode != "RGB":
        img = img.convert("RGB")

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    out = buf.getvalue()
    logger.debug(
        "normalized %s: %d bytes -> %dx%d, %d bytes",
        label, len(data), size[0], size[1], len(out),
    )
    return ImagePayload(data=out, mime_type=OUTPUT_MIME, width=size[0], height=size[1])


def normalize_many(
    images: Sequence[RawImage],
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: int = DEFAULT_JPEG_QUALITY,
    workers: int = 4,
) -> List[ImagePayload]:
    if not images:
        return []
    # map は入力順を保つ。1 枚でも失敗したら例外がそのまま伝播する
    with ThreadPoolExecutor(max_workers=min(workers, len(images))) as pool:
        return list(pool.map(
            lambda raw: normalize(raw.data, raw.mime_hint, max_width, quality, raw.filename),
            images,
        ))
