from enum import Enum

# Базовые адреса Azure Maps
AZURE_MAPS_TILE_URL = 'https://atlas.microsoft.com/map/tile'
AZURE_MAPS_STATIC_URL = 'https://atlas.microsoft.com/map/static/png'

# Версии API для тайлов и статичных изображений
AZURE_TILE_API_VERSION = '2.2'
AZURE_STATIC_API_VERSION = '2.0'

# Переменные окружения с ключом подписки (вторая: устаревшее имя)
SUBSCRIPTION_KEY_ENV = 'AZURE_MAPS_SUBSCRIPTION_KEY'
SUBSCRIPTION_KEY_ENV_FALLBACK = 'AZURE_MAPS_KEY'

# Размер тайла Web Mercator (пикселей)
TILE_SIZE = 256
TILE_SIZE_512 = 512
ALLOWED_TILE_SIZES = (TILE_SIZE, TILE_SIZE_512)

# Размер тайла, запрашиваемый при экспорте
EXPORT_TILE_SIZE = TILE_SIZE_512

# Жёсткий потолок числа тайлов на один экспорт
MAX_EXPORT_TILES = 50

# Выбор зума по протяжённости области: (порог в градусах, zoom)
ZOOM_BY_EXTENT_STEPS: tuple[tuple[float, int], ...] = (
    (0.001, 20),
    (0.01, 18),
    (0.1, 16),
    (1.0, 14),
)
ZOOM_BY_EXTENT_FALLBACK = 12

# Поиск зума по бюджету пикселей (оценка перед экспортом)
PIXEL_BUDGET_MAX_PX = 12000
PIXEL_BUDGET_START_ZOOM = 21
PIXEL_BUDGET_FLOOR_ZOOM = 14

# Зум по умолчанию и верхний предел для серверного экспорта
HIRES_DEFAULT_ZOOM = 18
HIRES_MAX_ZOOM = 20

# Разрешение на экваторе при zoom=0 (м/пиксель, тайл 256)
GROUND_RESOLUTION_EQUATOR_M = 156543.03392

# Средний радиус Земли для расстояний по большому кругу (метры)
EARTH_MEAN_RADIUS_M = 6371008.8

# Метров в градусе широты (плоское приближение площади)
METERS_PER_DEGREE_LAT = 111320

# Пересчёт площадей
SQ_FT_PER_SQ_M = 10.7639
SQ_M_PER_HECTARE = 10000
ACRES_PER_SQ_M = 0.000247105

# Пересчёт расстояний
M_PER_KM = 1000
FT_PER_M = 3.28084
MILES_PER_M = 0.000621371

# Минимум вершин для многоугольника и для ломаной
MIN_POLYGON_POINTS = 3
MIN_PATH_POINTS = 2

# Границы проекции
WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0
WORLD_LAT_MAX_DEG = 90.0

# Параллельность загрузки тайлов
DOWNLOAD_CONCURRENCY = 8

# HTTP: таймаут на тайл (сек), число попыток, основание экспоненты задержки
HTTP_TIMEOUT_DEFAULT = 5.0
HTTP_RETRIES_DEFAULT = 3
HTTP_BACKOFF_FACTOR = 1.6

# HTTP диапазоны ошибок сервера
HTTP_5XX_MIN = 500
HTTP_5XX_MAX = 600

# Кэш тайлов (aiohttp-client-cache, SQLite)
HTTP_CACHE_ENABLED = True
HTTP_CACHE_DIR = '.cache/tiles'
HTTP_CACHE_EXPIRE_HOURS = 168
HTTP_CACHE_RESPECT_HEADERS = True
HTTP_CACHE_STALE_IF_ERROR_HOURS = 72

# Статичное изображение (стандартный экспорт)
STATIC_IMAGE_SIZE_PX = 1280
STATIC_LAYER = 'basic'

# Выдача результата
EXPORT_FILENAME_PREFIX = 'map_highres_'
PNG_CONTENT_TYPE = 'image/png'
PNG_CACHE_CONTROL = 'public, max-age=3600'

# Логировать память каждые N тайлов
LOG_MEMORY_EVERY_TILES = 10

# Сервер по умолчанию
SERVER_DEFAULT_HOST = '127.0.0.1'
SERVER_DEFAULT_PORT = 8080


class MapStyle(str, Enum):
    SATELLITE = 'satellite'
    ROAD = 'road'


# Имя стиля в терминах Azure Maps
AZURE_STYLE_BY_MAP_STYLE: dict[MapStyle, str] = {
    MapStyle.SATELLITE: 'satellite_road_labels',
    MapStyle.ROAD: 'road',
}


def default_map_style() -> MapStyle:
    return MapStyle.SATELLITE


def resolve_map_style(value: 'MapStyle | str | None') -> MapStyle:
    """'satellite': спутник с подписями, всё остальное: дорожная карта."""
    if isinstance(value, MapStyle):
        return value
    if value is not None and str(value).strip().lower() == MapStyle.SATELLITE.value:
        return MapStyle.SATELLITE
    return MapStyle.ROAD


def azure_style_name(value: 'MapStyle | str | None') -> str:
    return AZURE_STYLE_BY_MAP_STYLE[resolve_map_style(value)]


def map_style_to_tileset_id(value: 'MapStyle | str | None') -> str:
    """Возвращает tilesetId для Azure Maps Render API."""
    return f'microsoft.base.{azure_style_name(value)}'
