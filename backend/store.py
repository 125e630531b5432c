"""
store.py
- Projects, samples and floor plans as plain JSON files under DATA_DIR
- One lock around every read-modify-write; the heatmap core never sees this module
"""

import json, re, logging, time
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

from pydantic import ValidationError

from models import Project, Sample

logger = logging.getLogger(__name__)

DEFAULT_PROJECT = {"id": "default", "name": "Default"}
PROJECT_ID_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")


class UnknownProject(KeyError):
    pass


def now_iso():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def safe_read_json(path: Path, fallback):
    try:
        if path.exists():
            return json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.warning("unreadable %s, using fallback (%s)", path, e)
    return fallback


def write_json(path: Path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2))
    tmp.replace(path)


def slugify(name):
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "project"


class SampleStore:
    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self.projects_file = self.data_dir / "projects.json"
        self.samples_dir = self.data_dir / "samples"
        self.floorplans_dir = self.data_dir / "floorplans"
        self._lock = Lock()

    # -------- projects --------

    def _read_projects(self):
        raw = safe_read_json(self.projects_file, [])
        projects = []
        for item in raw if isinstance(raw, list) else []:
            try:
                projects.append(Project.model_validate(item))
            except ValidationError:
                continue
        if not any(p.id == DEFAULT_PROJECT["id"] for p in projects):
            projects.insert(0, Project(**DEFAULT_PROJECT))
        return projects

    def list_projects(self):
        with self._lock:
            return self._read_projects()

    def get_project(self, project_id):
        if not project_id or not PROJECT_ID_RE.match(project_id):
            raise UnknownProject(project_id)
        with self._lock:
            for p in self._read_projects():
                if p.id == project_id:
                    return p
        raise UnknownProject(project_id)

    def create_project(self, name):
        with self._lock:
            projects = self._read_projects()
            taken = {p.id for p in projects}
            base = slugify(name)
            project_id, n = base, 2
            while project_id in taken:
                project_id = f"{base}-{n}"
                n += 1
            project = Project(id=project_id, name=name.strip(), created_at=now_iso())
            projects.append(project)
            write_json(self.projects_file, [p.model_dump(by_alias=True) for p in projects])
        logger.info("created project %s", project_id)
        return project

    # -------- samples --------

    def _samples_file(self, project_id):
        return self.samples_dir / f"{project_id}.json"

    def _read_samples(self, project_id):
        raw = safe_read_json(self._samples_file(project_id), [])
        samples = []
        for item in raw if isinstance(raw, list) else []:
            try:
                samples.append(Sample.model_validate(item))
            except ValidationError:
                logger.warning("dropping malformed sample in project %s", project_id)
        return samples

    def list_samples(self, project_id="default"):
        self.get_project(project_id)
        with self._lock:
            return self._read_samples(project_id)

    def add_sample(self, project_id, x, y, metrics, band=None, ssid=None):
        self.get_project(project_id)
        sample = Sample(
            id=int(time.time() * 1000),
            x=x,
            y=y,
            metrics=metrics,
            band=band,
            ssid=ssid,
            created_at=now_iso(),
        )
        with self._lock:
            samples = self._read_samples(project_id)
            samples.append(sample)
            write_json(self._samples_file(project_id), [s.model_dump(by_alias=True) for s in samples])
        return sample

    def reset_samples(self, project_id="default"):
        self.get_project(project_id)
        with self._lock:
            write_json(self._samples_file(project_id), [])

    # -------- floor plans --------

    def get_floorplan(self, project_id="default"):
        self.get_project(project_id)
        with self._lock:
            data = safe_read_json(self.floorplans_dir / f"{project_id}.json", {})
        return data.get("dataUrl") if isinstance(data, dict) else None

    def save_floorplan(self, project_id, data_url):
        self.get_project(project_id)
        with self._lock:
            write_json(self.floorplans_dir / f"{project_id}.json", {"dataUrl": data_url})
