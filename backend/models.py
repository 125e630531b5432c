"""
models.py
- Tagged records shared by the scorer, the interpolator and the API
- Every numeric field is coerced at validation time: NaN, inf, bools and
  junk strings become None instead of raising
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

BANDS = ("2.4", "5", "6")

# top-level keys older sample files carried outside of "metrics"
LEGACY_METRIC_KEYS = {
    "rssi": "rssi_dbm",
    "rssi_dbm": "rssi_dbm",
    "noise_dbm": "noise_dbm",
    "snr_db": "snr_db",
    "ping_avg_ms": "ping_avg_ms",
    "ping_jitter_ms": "ping_jitter_ms",
    "ping_loss_pct": "ping_loss_pct",
}


def to_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            number = float(str(value).strip())
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def to_int(value) -> Optional[int]:
    number = to_number(value)
    return int(number) if number is not None else None


def to_band(value) -> Optional[str]:
    if value is None:
        return None
    token = str(value).strip().lower().replace("ghz", "").strip()
    if token in ("2", "2.4", "2.5"):
        return "2.4"
    if token in ("5", "6"):
        return token
    return None


def band_from_channel(channel) -> Optional[str]:
    if not channel:
        return None
    return "2.4" if channel <= 14 else "5"


def band_from_freq(freq_mhz) -> Optional[str]:
    freq = to_number(freq_mhz)
    if not freq:
        return None
    if 2400 <= freq <= 2500:
        return "2.4"
    if 4900 <= freq <= 5900:
        return "5"
    if 5925 <= freq <= 7125:
        return "6"
    return None


def _blank_to_none(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# ============================================================
# Scan side
# ============================================================

class ObservedNetwork(BaseModel):
    model_config = ConfigDict(frozen=True)

    ssid: Optional[str] = None
    bssid: Optional[str] = None
    band: Optional[str] = None
    channel: Optional[int] = None
    channel_width_mhz: Optional[int] = None
    rssi_dbm: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_band(cls, data: Any):
        if isinstance(data, dict) and not to_band(data.get("band")):
            channel = to_int(data.get("channel"))
            data = {**data, "band": band_from_channel(channel)}
        return data

    @field_validator("ssid", "bssid", mode="before")
    @classmethod
    def _strings(cls, v):
        return _blank_to_none(v)

    @field_validator("band", mode="before")
    @classmethod
    def _band(cls, v):
        return to_band(v)

    @field_validator("channel", "channel_width_mhz", mode="before")
    @classmethod
    def _ints(cls, v):
        return to_int(v)

    @field_validator("rssi_dbm", mode="before")
    @classmethod
    def _rssi(cls, v):
        return to_number(v)


class ScanResult(BaseModel):
    t: int
    source: str
    cache_hit: bool = False
    networks: List[ObservedNetwork] = Field(default_factory=list)


class Recommendation(BaseModel):
    channel: int
    width_mhz: int
    reason: str


class BandReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scores_by_channel: Dict[int, float] = Field(default_factory=dict, alias="scoresByChannel")
    recommended: Recommendation
    missing_rssi: int = Field(default=0, alias="missingRssi")


class CongestionReport(BaseModel):
    band24: BandReport
    band5: BandReport


# ============================================================
# Survey side
# ============================================================

class Sample(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[int] = None
    x: float = Field(allow_inf_nan=False)
    y: float = Field(allow_inf_nan=False)
    metrics: Dict[str, Optional[float]] = Field(default_factory=dict)
    band: Optional[str] = None
    ssid: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @field_validator("x", "y", mode="before")
    @classmethod
    def _coords(cls, v):
        return to_number(v)

    @model_validator(mode="before")
    @classmethod
    def _fold_legacy_metrics(cls, data: Any):
        if not isinstance(data, dict):
            return data
        metrics = data.get("metrics")
        metrics = dict(metrics) if isinstance(metrics, dict) else {}
        for legacy, key in LEGACY_METRIC_KEYS.items():
            if legacy in data and metrics.get(key) is None:
                metrics[key] = data[legacy]
        return {**data, "metrics": metrics}

    @field_validator("metrics", mode="before")
    @classmethod
    def _metric_values(cls, v):
        if not isinstance(v, dict):
            return {}
        return {str(k): to_number(val) for k, val in v.items()}

    @field_validator("band", mode="before")
    @classmethod
    def _band(cls, v):
        return to_band(v)

    @field_validator("ssid", mode="before")
    @classmethod
    def _ssid(cls, v):
        return _blank_to_none(v)


class MetricConfig(BaseModel):
    key: str
    label: str
    good: float
    bad: float


class ValueRange(BaseModel):
    min: float
    max: float


class HeatCell(BaseModel):
    x: float
    y: float
    intensity: float


class HeatField(BaseModel):
    metric: str
    range: Optional[ValueRange] = None
    cells: List[HeatCell] = Field(default_factory=list)


# ============================================================
# Probe side
# ============================================================

class WifiInfo(BaseModel):
    ssid: Optional[str] = None
    bssid: Optional[str] = None
    band: Optional[str] = None
    channel: Optional[int] = None
    channel_width_mhz: Optional[int] = None
    rssi_dbm: Optional[float] = None
    noise_dbm: Optional[float] = None


class PingStats(BaseModel):
    gateway: Optional[str] = None
    loss_pct: Optional[float] = None
    avg_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    jitter_ms: Optional[float] = None


class Project(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")


# ============================================================
# Request bodies
# ============================================================

class SampleCreate(BaseModel):
    x: float = Field(allow_inf_nan=False)
    y: float = Field(allow_inf_nan=False)
    project: str = "default"

    @field_validator("x", "y", mode="before")
    @classmethod
    def _coords(cls, v):
        return to_number(v)


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)


class ProjectRef(BaseModel):
    project: str = "default"


class FloorplanUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data_url: Optional[str] = Field(default=None, alias="dataUrl")
    project: str = "default"
