from enum import Enum

# Базовый URL сервера растровых тайлов OpenStreetMap
OSM_TILE_BASE = 'https://tile.openstreetmap.org'

# Идентификация клиента для политики использования тайлов OSM
USER_AGENT = 'staticmap-osm/1.0 (+https://github.com/staticmap-osm/staticmap-osm)'

# Базовый размер тайла Web Mercator (пикселей)
TILE_SIZE = 256

# Предел широты проекции Web Mercator (градусы)
MERCATOR_MAX_LAT = 85.0511287798

# Диапазон уровней приближения по умолчанию
MIN_ZOOM = 0
MAX_ZOOM = 20

# Допустимый диапазон множителя выходного изображения (HiDPI)
MIN_OUTPUT_SCALE = 1
MAX_OUTPUT_SCALE = 4

# Логический размер маркера-изображения (px, до масштабирования)
MARKER_TARGET_SIZE = 32

# Кэш исходных тайлов в памяти
TILE_CACHE_MAX_SIZE = 1000
TILE_CACHE_TTL_MINUTES = 60

# Глобальные ограничения запросов к серверу тайлов
RATE_LIMIT_MAX_CONCURRENT = 2
RATE_LIMIT_REQUESTS_PER_SECOND = 2.0

# Повторные попытки: число попыток и базовая задержка экспоненциального отката
HTTP_RETRIES_DEFAULT = 3
HTTP_BACKOFF_BASE_MS = 1000

# Таймаут одной попытки загрузки тайла (мс)
HTTP_TIMEOUT_MS = 10_000

# Границы HTTP статусов
HTTP_OK = 200
HTTP_2XX_MAX = 300
HTTP_4XX_MIN = 400
HTTP_4XX_MAX = 500

# Каталог кэша готовых изображений
RESULT_CACHE_DIR = 'cache'

# Файл конфигурации по умолчанию
CONFIG_FILE = 'config.toml'

# Параметры HTTP сервера
SERVER_HOST = '0.0.0.0'
SERVER_PORT = 3000

# Заголовок Cache-Control для отданных карт (секунды)
RESPONSE_MAX_AGE = 86400

# Формат строк журнала
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class OutputFormat(str, Enum):
    """Формат кодирования итогового изображения."""

    PNG = 'png'
    JPEG = 'jpeg'
    WEBP = 'webp'

    @property
    def content_type(self) -> str:
        return f'image/{self.value}'

    @property
    def extension(self) -> str:
        return 'jpg' if self is OutputFormat.JPEG else self.value

    @property
    def pil_format(self) -> str:
        return self.value.upper()


class MarkerFit(str, Enum):
    """Политика вписывания изображения маркера в целевой размер."""

    CONTAIN = 'contain'
    COVER = 'cover'
