"""Internal constants shared across the library."""

USER_AGENT = "fishfeeder/1"

# ------------------------------------------------------------------
# Store paths
# ------------------------------------------------------------------

FEEDER_PATH = "system/feeder"
DEVICE_PATH = "system/device"
SENSORS_PATH = "system/sensors"
ALERTS_PATH = "system/alerts"
TELEGRAM_PATH = "system/telegram"

LAST_FEED_TIME_PATH = f"{FEEDER_PATH}/lastFeedTime"
LAST_FEED_PATH = f"{FEEDER_PATH}/lastFeed"
STATUS_PATH = f"{FEEDER_PATH}/status"
TIMER_PATH = f"{FEEDER_PATH}/timer"
PRIORITY_PATH = f"{FEEDER_PATH}/priority"
RESERVATIONS_PATH = f"{FEEDER_PATH}/reservations"
HISTORY_PATH = f"{FEEDER_PATH}/history"

# ------------------------------------------------------------------
# Feeding rules
# ------------------------------------------------------------------

#: 2000-01-01T00:00:00Z in epoch milliseconds.  Anything below this was
#: written by the device's uptime counter rather than a wall clock.
EPOCH_FLOOR_MS = 946_684_800_000

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60_000
MS_PER_HOUR = 3_600_000

MAX_RESERVATIONS = 20
MAX_HISTORY = 20

DEFAULT_AUTO_FEED_DELAY_MINUTES = 30
DEFAULT_RESERVATION_DELAY_MINUTES = 0

UNATTENDED_REQUESTER = "System"
DEFAULT_REQUESTER = "Visitor"

MAX_REQUESTER_LENGTH = 100
MAX_CONTACT_LENGTH = 200
MAX_DEVICE_ID_LENGTH = 100

# ------------------------------------------------------------------
# Device presence
# ------------------------------------------------------------------

#: Device ``lastSeen`` values above this are milliseconds, not seconds.
LAST_SEEN_MS_THRESHOLD = 10_000_000_000

#: Background scheduling tolerates short telemetry gaps.
TOLERANT_ONLINE_WINDOW_S = 60.0
#: Operator actions require fresher telemetry and no fallback.
STRICT_ONLINE_WINDOW_S = 120.0

WIFI_CONNECTED = "connected"

# ------------------------------------------------------------------
# Alerts
# ------------------------------------------------------------------

TDS_ALERT_THRESHOLD_PPM = 800.0
TEMPERATURE_SAFE_MIN_C = 20.0
TEMPERATURE_SAFE_MAX_C = 30.0
SENSOR_ALERT_INTERVAL_MS = 30 * MS_PER_MINUTE
DEVICE_ALERT_INTERVAL_MS = 15 * MS_PER_MINUTE

DAY_NAMES: tuple[str, ...] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

# ------------------------------------------------------------------
# Remote services
# ------------------------------------------------------------------

TELEGRAM_API_BASE = "https://api.telegram.org"
ETAG_REQUEST_HEADER = "X-Firebase-ETag"
