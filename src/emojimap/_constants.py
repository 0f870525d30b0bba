"""Internal constants shared across the library."""

USER_AGENT = "emojimap/1"
DEFAULT_TABLE = "emojis"
DEFAULT_STORAGE_KEY = "emojiWorldMap"

#: Half-width of the dedup bounding box, in degrees, on both axes.
PROXIMITY_WINDOW: float = 0.01

LATITUDE_RANGE: tuple[float, float] = (-90.0, 90.0)
LONGITUDE_RANGE: tuple[float, float] = (-180.0, 180.0)

ADVISORY_LOAD_FAILED = "Failed to load emojis. Using offline mode."
ADVISORY_ADD_FAILED = "Failed to add emoji. Please try again."
ADVISORY_NOT_CONFIGURED = "Backend is not configured. Using offline mode."

# ------------------------------------------------------------------
# Map surface defaults
# ------------------------------------------------------------------

TILE_URL = "https://{s}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}{r}.png"
TILE_ATTRIBUTION = '&copy; <a href="https://carto.com/attributions">CARTO</a>'
MAP_CENTER: tuple[float, float] = (20.0, 0.0)
MAP_ZOOM = 2
MAP_MIN_ZOOM = 2
MAP_MAX_ZOOM = 18
