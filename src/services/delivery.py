"""Hand-off of the finished image: a PNG file on disk or PNG bytes for an HTTP response."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from PIL import Image

from imaging.composer import encode_png
from shared.constants import EXPORT_FILENAME_PREFIX, PNG_CACHE_CONTROL, PNG_CONTENT_TYPE

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    width: int
    height: int
    path: Path | None = None
    content: bytes | None = None
    headers: dict[str, str] = field(default_factory=dict)


class Delivery(Protocol):
    def deliver(self, image: Image.Image) -> DeliveryResult: ...


def export_filename(epoch_ms: int) -> str:
    return f'{EXPORT_FILENAME_PREFIX}{epoch_ms}.png'


class FileDelivery:
    """Сохраняет PNG как map_highres_<epoch-ms>.png в output_dir."""

    def __init__(
        self,
        output_dir: str | Path = '.',
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.output_dir = Path(output_dir)
        self._clock = clock

    def deliver(self, image: Image.Image) -> DeliveryResult:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / export_filename(int(self._clock() * 1000))
        image.save(path, format='PNG')
        logger.info('Saved %dx%d px export to %s', image.width, image.height, path)
        return DeliveryResult(width=image.width, height=image.height, path=path)


class PngResponseDelivery:
    """PNG-байты и заголовки для ответа сервера."""

    def deliver(self, image: Image.Image) -> DeliveryResult:
        return DeliveryResult(
            width=image.width,
            height=image.height,
            content=encode_png(image),
            headers={
                'Content-Type': PNG_CONTENT_TYPE,
                'Cache-Control': PNG_CACHE_CONTROL,
            },
        )
