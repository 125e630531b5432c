from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
import logging

from typing import List, Optional

from channels import compute_congestion
from heatmap import build_heat_field, estimate_value_at, filter_samples
from models import (
  CongestionReport,
  FloorplanUpdate,
  HeatField,
  MetricConfig,
  Project,
  ProjectCreate,
  ProjectRef,
  Sample,
  SampleCreate,
  ScanResult,
)
from probe import ping_gateway
from scan_scheduler import RUN_LOCK, has_jobs, scheduler
from scanner import SCAN_CACHE, get_scan
from settings import (
  DATA_DIR,
  DEFAULT_METRIC,
  HEATMAP_GRID_STEP,
  HOST,
  LOG_LEVEL,
  METRICS,
  MODE,
  PORT,
  SAMPLE_PING,
  WIFI_IFACE,
)
from store import SampleStore, UnknownProject
from wifi_info import get_wifi_info

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# swapped out in tests
store = SampleStore(DATA_DIR)
scan_cache = SCAN_CACHE
scan_provider = None


def get_metric_config(key) -> MetricConfig:
  for metric in METRICS:
    if metric["key"] == key:
      return MetricConfig(**metric)
  raise HTTPException(status_code=404, detail=f"unknown metric: {key}")


def measure_sample_metrics():
  """
  Read the current link (and optionally ping the gateway) for one survey click.
  Missing readings stay None so the sample still records its position.
  """
  info = get_wifi_info(WIFI_IFACE)
  metrics = {
    "rssi_dbm": info.rssi_dbm,
    "noise_dbm": info.noise_dbm,
    "snr_db": None,
  }
  if info.rssi_dbm is not None and info.noise_dbm is not None:
    metrics["snr_db"] = info.rssi_dbm - info.noise_dbm

  if SAMPLE_PING:
    stats = ping_gateway()
    metrics.update({
      "ping_avg_ms": stats.avg_ms,
      "ping_jitter_ms": stats.jitter_ms,
      "ping_loss_pct": stats.loss_pct,
    })
  return info, metrics


# ============================================================
# FastAPI App
# ============================================================

app = FastAPI(title="Wi-Fi Heatmap API (FastAPI)")

app.add_middleware(
  CORSMiddleware,
  allow_origins=["*"],
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)


@app.exception_handler(UnknownProject)
async def unknown_project_handler(request: Request, exc: UnknownProject):
  return JSONResponse(status_code=404, content={"error": f"unknown project: {exc.args[0]}"})


@app.on_event("startup")
def start_scheduler():
  if has_jobs() and not scheduler.running:
    scheduler.start()
    logger.info("background scan refresh started")


@app.on_event("shutdown")
def stop_scheduler():
  if scheduler.running:
    scheduler.shutdown(wait=False)


@app.get("/health")
def health():
  return {"ok": True, "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}


# ============================================================
# Link / Scan Endpoints
# ============================================================

@app.get("/api/meta")
def meta():
  info = get_wifi_info(WIFI_IFACE)
  return {
    "ssid": info.ssid,
    "band": info.band,
    "rssi": info.rssi_dbm,
    "noise": info.noise_dbm,
    "channel": info.channel,
    "mode": MODE,
  }


@app.get("/api/metrics")
def metrics():
  return {"metrics": METRICS}


def fetch_scan(force=False):
  if not force:
    return get_scan(cache=scan_cache, provider=scan_provider)
  # forced scans never overlap the background refresh
  with RUN_LOCK:
    return get_scan(force=True, cache=scan_cache, provider=scan_provider)


@app.get("/api/scan", response_model=ScanResult)
def scan(force: bool = False):
  return fetch_scan(force)


@app.get("/api/channels", response_model=CongestionReport)
def channels(force: bool = False):
  result = fetch_scan(force)
  return compute_congestion(result.networks)


# ============================================================
# Projects / Samples
# ============================================================

@app.get("/api/projects", response_model=List[Project])
def list_projects():
  return store.list_projects()


@app.post("/api/projects", response_model=Project)
def create_project(payload: ProjectCreate):
  if not payload.name.strip():
    raise HTTPException(status_code=400, detail="name must not be blank")
  return store.create_project(payload.name)


@app.get("/api/samples", response_model=List[Sample])
def list_samples(project: str = "default"):
  return store.list_samples(project)


@app.post("/api/sample", response_model=Sample)
def add_sample(payload: SampleCreate):
  store.get_project(payload.project)
  info, sample_metrics = measure_sample_metrics()
  return store.add_sample(
    payload.project,
    payload.x,
    payload.y,
    sample_metrics,
    band=info.band,
    ssid=info.ssid,
  )


@app.post("/api/reset")
def reset(payload: Optional[ProjectRef] = None):
  project = payload.project if payload else "default"
  store.reset_samples(project)
  return {"ok": True}


@app.get("/api/floorplan")
def get_floorplan(project: str = "default"):
  return {"dataUrl": store.get_floorplan(project)}


@app.post("/api/floorplan")
def save_floorplan(payload: FloorplanUpdate):
  store.save_floorplan(payload.project, payload.data_url)
  return {"ok": True}


# ============================================================
# Heatmap
# ============================================================

@app.get("/api/estimate")
def estimate(
  x: float,
  y: float,
  metric: str = DEFAULT_METRIC,
  project: str = "default",
  band: str = "all",
):
  config = get_metric_config(metric)
  samples = filter_samples(store.list_samples(project), band)
  return {"metric": config.key, "value": estimate_value_at((x, y), samples, config.key)}


@app.get("/api/heatmap", response_model=HeatField)
def heatmap(
  width: int = Query(..., ge=1, le=10000),
  height: int = Query(..., ge=1, le=10000),
  metric: str = DEFAULT_METRIC,
  project: str = "default",
  band: str = "all",
  auto_scale: bool = False,
  high_contrast: bool = False,
  step: int = Query(HEATMAP_GRID_STEP, ge=4, le=512),
):
  """
  Heat-field cells for the current sample set. Recomputed on every call;
  an empty `cells` list means there is nothing to draw yet.
  """
  config = get_metric_config(metric)
  return build_heat_field(
    store.list_samples(project),
    config,
    width,
    height,
    step=step,
    band=band,
    auto_scale=auto_scale,
    high_contrast=high_contrast,
  )


if __name__ == "__main__":
  import uvicorn

  logger.info("wifi-heatmap API running on http://%s:%s", HOST, PORT)
  uvicorn.run(app, host=HOST, port=PORT)
