"""Error taxonomy for map export.

Only TileFetchError is tolerated inside a running job (the tile is left blank);
every other error aborts the job and carries a message fit for the user.
"""

from __future__ import annotations


class ExportError(RuntimeError):
    """Base class; str(err) is the human-readable reason."""


class ConfigurationError(ExportError):
    """Missing or invalid configuration (API key). Fatal, no retry."""


class NoShapeSelectedError(ExportError):
    def __init__(self, message: str = 'Draw a polygon or rectangle first.') -> None:
        super().__init__(message)


class TooManyTilesError(ExportError):
    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(
            f'Area too large! Would require {count} tiles (limit {limit}). '
            'Try a smaller area.'
        )


class ExportInProgressError(ExportError):
    def __init__(self) -> None:
        super().__init__('An export is already running. Wait for it to finish.')


class TileFetchError(ExportError):
    """Одиночный тайл не загружен; задание продолжается без него."""

    def __init__(self, x: int, y: int, zoom: int, cause: BaseException | str) -> None:
        self.x = x
        self.y = y
        self.zoom = zoom
        self.cause = cause
        super().__init__(f'Failed to load tile z/x/y={zoom}/{x}/{y}: {cause}')


class EmptyRegionError(ExportError):
    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        super().__init__(
            f'Selected area is smaller than one pixel at this zoom ({width}x{height}px).'
        )


class NetworkError(ExportError):
    """Ошибка внешнего сервиса карт; исходная причина лежит в .cause."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)
