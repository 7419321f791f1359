import os

from dsc_bridge import __version__

__all__ = [
    "ARM_AWAY_PAYLOAD",
    "ARM_HOME_PAYLOAD",
    "ARM_NIGHT_PAYLOAD",
    "AVAILABLE_PAYLOAD",
    "DISARMED_PAYLOAD",
    "DSC_ACCESS_CODE",
    "DSC_AVAILABILITY_INTERVAL",
    "DSC_DEBUG",
    "DSC_DEFAULT_PARTITION",
    "DSC_DISABLED_PARTITIONS",
    "DSC_LOG_FORMAT",
    "DSC_LOG_HUMAN_OUTPUT",
    "DSC_LOG_JSON_FILE",
    "DSC_LOG_NAME",
    "DSC_METRICS_PORT",
    "DSC_MQTT_CLIENT_ID",
    "DSC_MQTT_HOST",
    "DSC_MQTT_KEEPALIVE",
    "DSC_MQTT_PASS",
    "DSC_MQTT_PORT",
    "DSC_MQTT_USER",
    "DSC_PERF_THRESHOLD_MS",
    "DSC_PERF_TRACKING",
    "DSC_RECONNECT_INTERVAL_MS",
    "DSC_TICK_INTERVAL_MS",
    "DSC_TOPIC",
    "DSC_VERSION",
    "DSC_WRITE_QUEUE_SIZE",
    "FLAG_OFF_PAYLOAD",
    "FLAG_ON_PAYLOAD",
    "MAX_PARTITIONS",
    "MAX_PGM_OUTPUTS",
    "MAX_ZONES",
    "PENDING_PAYLOAD",
    "TRIGGERED_PAYLOAD",
    "UNAVAILABLE_PAYLOAD",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
DSC_LOG_NAME: str = "dsc_bridge"

DSC_VERSION: str = __version__

# Panel geometry
MAX_PARTITIONS: int = 8
MAX_ZONES: int = 64
MAX_PGM_OUTPUTS: int = 14

# Partition state payloads (Home Assistant alarm_control_panel vocabulary)
DISARMED_PAYLOAD: str = "disarmed"
ARM_HOME_PAYLOAD: str = "armed_home"
ARM_AWAY_PAYLOAD: str = "armed_away"
ARM_NIGHT_PAYLOAD: str = "armed_night"
PENDING_PAYLOAD: str = "pending"
TRIGGERED_PAYLOAD: str = "triggered"
# Zone / PGM / fire / trouble payloads
FLAG_ON_PAYLOAD: str = "1"
FLAG_OFF_PAYLOAD: str = "0"
AVAILABLE_PAYLOAD: str = "online"
UNAVAILABLE_PAYLOAD: str = "offline"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DSC_MQTT_HOST: str = os.environ.get("DSC_MQTT_HOST", "homeassistant.local")
DSC_MQTT_PORT: int = _int_env("DSC_MQTT_PORT", 1883)
DSC_MQTT_USER: str | None = os.environ.get("DSC_MQTT_USER") or None
DSC_MQTT_PASS: str | None = os.environ.get("DSC_MQTT_PASS") or None
DSC_MQTT_CLIENT_ID: str = os.environ.get("DSC_MQTT_CLIENT_ID", "alarmsys")
DSC_MQTT_KEEPALIVE: int = _int_env("DSC_MQTT_KEEPALIVE", 60)
DSC_TOPIC: str = os.environ.get("DSC_TOPIC", "alarmsys")
DSC_RECONNECT_INTERVAL_MS: int = _int_env("DSC_RECONNECT_INTERVAL_MS", 2000)
DSC_TICK_INTERVAL_MS: int = _int_env("DSC_TICK_INTERVAL_MS", 10)
DSC_AVAILABILITY_INTERVAL: int = _int_env("DSC_AVAILABILITY_INTERVAL", 0)

# An access code is required to disarm and may be required to arm, depending on panel configuration
DSC_ACCESS_CODE: str = os.environ.get("DSC_ACCESS_CODE", "")
DSC_DEFAULT_PARTITION: int = _int_env("DSC_DEFAULT_PARTITION", 1)
DSC_WRITE_QUEUE_SIZE: int = _int_env("DSC_WRITE_QUEUE_SIZE", 8)
_disabled_env = os.environ.get("DSC_DISABLED_PARTITIONS")
if _disabled_env:
    _disabled_value: tuple[int, ...] = tuple(int(x) for x in _disabled_env.split(",") if x.strip().isdigit())
else:
    _disabled_value = ()
DSC_DISABLED_PARTITIONS: tuple[int, ...] = _disabled_value

DSC_DEBUG: bool = os.environ.get("DSC_DEBUG", "0").casefold() in YES_ANSWER

# Logging Configuration
DSC_LOG_FORMAT: str = os.environ.get("DSC_LOG_FORMAT", "human")  # "json", "human", or "both"
DSC_LOG_JSON_FILE: str = os.environ.get("DSC_LOG_JSON_FILE", "/var/log/dsc_bridge.json")
DSC_LOG_HUMAN_OUTPUT: str = os.environ.get("DSC_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

# Metrics / performance instrumentation
DSC_METRICS_PORT: int = _int_env("DSC_METRICS_PORT", 0)
DSC_PERF_TRACKING: bool = os.environ.get("DSC_PERF_TRACKING", "true").casefold() in YES_ANSWER
_perf_threshold = os.environ.get("DSC_PERF_THRESHOLD_MS", "100")
DSC_PERF_THRESHOLD_MS: int = int(_perf_threshold) if _perf_threshold and _perf_threshold.isdigit() else 100
