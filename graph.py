# graph.py
import logging
import threading
from typing import List, Sequence

from langgraph.graph import StateGraph

from config import DEFAULT_JPEG_QUALITY, DEFAULT_MAX_WIDTH
from contacts import ContactBook
from image import normalize_many
from models import Contact, RawImage, State
from ocr import ExtractionClient

logger = logging.getLogger(__name__)


def create_graph(
    client: ExtractionClient,
    book: ContactBook,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: int = DEFAULT_JPEG_QUALITY,
):
    """normalize → extract → ingest

    どのノードで失敗しても例外は invoke からそのまま上がる。
    ingest は抽出成功後にしか走らないので、失敗時に一覧は変わらない。
    """

    def normalize_node(state: State) -> State:
        return {"payloads": normalize_many(state["images"], max_width, quality)}

    def extract_node(state: State) -> State:
        return {"records": client.extract(state["payloads"])}

    def ingest_node(state: State) -> State:
        return {"contacts": book.ingest(state["records"])}

    sg = StateGraph(State)
    sg.add_node("normalize", normalize_node)
    sg.add_node("extract", extract_node)
    sg.add_node("ingest", ingest_node)

    sg.set_entry_point("normalize")
    sg.add_edge("normalize", "extract")
    sg.add_edge("extract", "ingest")
    sg.set_finish_point("ingest")
    return sg.compile()


class ScanPipeline:
    """同じセッションで抽出が同時に走らないよう直列化する"""

    def __init__(
        self,
        client: ExtractionClient,
        book: ContactBook,
        max_width: int = DEFAULT_MAX_WIDTH,
        quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        self.client = client
        self.book = book
        self._graph = create_graph(client, book, max_width, quality)
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def run(self, images: Sequence[RawImage]) -> List[Contact]:
        if not images:
            return []
        with self._lock:
            logger.info("scan started: %d image(s)", len(images))
            result = self._graph.invoke({"images": list(images)})
            return result.get("contacts", [])
