import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


def _env_int(name, default):
    raw = os.getenv(name)
    try:
        return int(raw) if raw not in (None, "") else default
    except ValueError:
        return default


def _env_flag(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# -------- SERVER --------
HOST = os.getenv("HOST", "0.0.0.0")
PORT = _env_int("PORT", 8787)
MODE = os.getenv("MODE", "heatmap")            # "heatmap" or "spectrum"
WIFI_IFACE = os.getenv("WIFI_IFACE", "wlan0")  # linux only
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -------- SCAN / PROBE --------
SCAN_CACHE_TTL_SEC = _env_int("SCAN_CACHE_TTL_SEC", 45)
SCAN_TIMEOUT_SEC = _env_int("SCAN_TIMEOUT_SEC", 12)
SCAN_REFRESH_SEC = _env_int("SCAN_REFRESH_SEC", 0)   # 0 = no background refresh
META_TIMEOUT_SEC = _env_int("META_TIMEOUT_SEC", 4)
SAMPLE_PING = _env_flag("SAMPLE_PING")
PING_COUNT = _env_int("PING_COUNT", 8)

# -------- HEATMAP --------
HEATMAP_GRID_STEP = 24
HEATMAP_MAX_DISTANCE = 220     # floor-plan pixels
HEATMAP_IDW_POWER = 2
CONTRAST_BASE = 1.5
CONTRAST_BOOST = 2.0

# good -> intensity 1.0, bad -> intensity 0.0
METRICS = [
    {"key": "rssi_dbm", "label": "RSSI (dBm)", "good": -50, "bad": -80},
    {"key": "snr_db", "label": "SNR (dB)", "good": 25, "bad": 10},
    {"key": "ping_avg_ms", "label": "Latency to router (ms)", "good": 2, "bad": 30},
    {"key": "ping_jitter_ms", "label": "Jitter (ms)", "good": 2, "bad": 20},
    {"key": "ping_loss_pct", "label": "Packet loss (%)", "good": 0, "bad": 10},
    {"key": "noise_dbm", "label": "Noise floor (dBm)", "good": -95, "bad": -70},
]
DEFAULT_METRIC = "rssi_dbm"
