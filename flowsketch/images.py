"""Asynchronous image cache for image nodes.

Images are fetched once per URL. A URL that is cached or still loading is
never requested again; ``imageLoaded`` fires when a fetch completes so the
surface can repaint.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Set

from PySide6.QtCore import QObject, QUrl, Signal
from PySide6.QtGui import QImage
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

logger = logging.getLogger(__name__)

# fetcher(url, on_done) must eventually call on_done(url, image_bytes_or_None)
Fetcher = Callable[[str, Callable[[str, Optional[bytes]], None]], None]


class ImageCache(QObject):
    """Cache decoded images keyed by URL."""

    imageLoaded = Signal(str)
    imageFailed = Signal(str)

    def __init__(self, fetcher: Optional[Fetcher] = None):
        super().__init__()
        self._images: Dict[str, QImage] = {}
        self._loading: Set[str] = set()
        self._failed: Set[str] = set()
        self._network: Optional[QNetworkAccessManager] = None
        self._fetcher = fetcher if fetcher is not None else self._fetch_with_network

    def image(self, url: str) -> Optional[QImage]:
        """Return the decoded image, starting a fetch on first request."""
        cached = self._images.get(url)
        if cached is not None:
            return cached
        if url and url not in self._loading and url not in self._failed:
            self._loading.add(url)
            self._fetcher(url, self._on_fetched)
        return None

    def is_loading(self, url: str) -> bool:
        return url in self._loading

    def _on_fetched(self, url: str, payload: Optional[bytes]) -> None:
        self._loading.discard(url)
        image = QImage.fromData(payload) if payload else QImage()
        if image.isNull():
            logger.warning("Could not load image %s", url)
            self._failed.add(url)
            self.imageFailed.emit(url)
            return
        self._images[url] = image
        self.imageLoaded.emit(url)

    def _fetch_with_network(self, url: str, on_done: Callable[[str, Optional[bytes]], None]) -> None:
        if self._network is None:
            self._network = QNetworkAccessManager(self)
        reply = self._network.get(QNetworkRequest(QUrl(url)))

        def finished() -> None:
            if reply.error() == QNetworkReply.NetworkError.NoError:
                on_done(url, bytes(reply.readAll()))
            else:
                logger.warning("Image request failed for %s: %s", url, reply.errorString())
                on_done(url, None)
            reply.deleteLater()

        reply.finished.connect(finished)
