import platform, subprocess, json, re, time, argparse, logging
from pathlib import Path
from threading import Lock

from models import ObservedNetwork, ScanResult, band_from_freq, to_int, to_number
from settings import SCAN_CACHE_TTL_SEC, SCAN_TIMEOUT_SEC

logger = logging.getLogger(__name__)

MAC_RE = re.compile(r"([0-9a-f]{2}:){5}[0-9a-f]{2}", re.I)


def run_cmd(cmd, timeout=SCAN_TIMEOUT_SEC):
    try:
        return subprocess.run(cmd, shell=True, capture_output=True, text=True, timeout=timeout).stdout or ""
    except subprocess.TimeoutExpired:
        logger.warning("command timed out after %ss: %s", timeout, cmd)
    except OSError as e:
        logger.warning("command failed: %s (%s)", cmd, e)
    return ""


# ============================================================
# Text parsers
# ============================================================

def parse_signal_noise(s):
    # expected like "-56 dBm / -91 dBm"
    m = re.findall(r"(-?\d+)\s*dBm", s or "")
    if len(m) >= 2:
        return int(m[0]), int(m[1])
    if len(m) == 1:
        return int(m[0]), None
    return None, None


def parse_channel_info(text):
    # examples: "11/20", "36 (5 GHz, 80 MHz)", "149,80"
    if not text:
        return None, None
    ch = re.search(r"(\d{1,3})", text)
    width = re.search(r"(\d{2,3})\s*MHz", text, re.I) or re.search(r"[/,]\s*(\d{1,3})", text)
    return (to_int(ch.group(1)) if ch else None,
            to_int(width.group(1)) if width else None)


def parse_width(text):
    _, width = parse_channel_info(text)
    if width is None and text:
        m = re.search(r"(\d{2,3})", text)
        width = to_int(m.group(1)) if m else None
    return width


def normalize_network(raw) -> ObservedNetwork:
    return ObservedNetwork.model_validate({
        "ssid": raw.get("ssid"),
        "bssid": raw.get("bssid"),
        "band": raw.get("band"),
        "channel": raw.get("channel"),
        "channel_width_mhz": raw.get("channel_width_mhz"),
        "rssi_dbm": raw.get("rssi_dbm"),
    })


def _field(pattern, block):
    m = re.search(pattern, block, re.I | re.M)
    return m.group(1).strip() if m else None


def _parse_wdutil_blocks(output):
    nets = []
    for block in re.split(r"\n\s*\n", output):
        ssid = _field(r"^\s*SSID\s*:\s*(.+)$", block)
        bssid = _field(r"^\s*BSSID\s*:\s*([0-9a-f:]+)", block)
        rssi = _field(r"^\s*RSSI\s*:\s*(-?\d+)", block) or _field(r"^\s*Signal\s*:\s*(-?\d+)", block)
        channel_line = _field(r"^\s*Channel\s*:\s*(.+)$", block)
        width_line = _field(r"^\s*(?:Channel\s+)?Width\s*:\s*(.+)$", block)
        if not (ssid or bssid or rssi or channel_line):
            continue
        channel, width = parse_channel_info(channel_line)
        nets.append(normalize_network({
            "ssid": ssid,
            "bssid": bssid,
            "rssi_dbm": rssi,
            "channel": channel,
            "channel_width_mhz": parse_width(width_line) or width,
        }))
    return nets


def _parse_wdutil_table(output):
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    header = next((i for i, line in enumerate(lines)
                   if re.search("ssid", line, re.I) and re.search("channel", line, re.I)), None)
    if header is None:
        return []

    nets = []
    for line in lines[header + 1:]:
        parts = [p.strip() for p in re.split(r"\s{2,}", line) if p.strip()]
        if len(parts) < 2:
            continue
        rest = parts[1:]
        bssid = next((p for p in rest if MAC_RE.fullmatch(p)), None)
        rssi = next((p for p in rest if re.fullmatch(r"-\d+", p)), None)
        channel_part = next((p for p in rest
                             if p not in (bssid, rssi) and re.match(r"\d{1,3}\b", p)), None)
        channel, width = parse_channel_info(channel_part)
        nets.append(normalize_network({
            "ssid": parts[0],
            "bssid": bssid,
            "rssi_dbm": rssi,
            "channel": channel,
            "channel_width_mhz": width,
        }))
    return nets


def parse_wdutil_scan(output):
    """
    Parse `wdutil scan` output.

    Newer macOS prints one "Key : value" block per network separated by blank
    lines; older builds print an aligned table with an SSID/Channel header.
    """
    if not output:
        return []
    return _parse_wdutil_blocks(output) or _parse_wdutil_table(output)


def _indent(line):
    return len(line) - len(line.lstrip())


def parse_system_profiler(output):
    if not output:
        return []
    lines = output.splitlines()
    start = next((i for i, line in enumerate(lines)
                  if "other local" in line.lower() and "networks" in line.lower()), None)
    if start is None:
        return []

    header_indent = _indent(lines[start])
    name_indent = None
    nets = []
    current = None

    for line in lines[start + 1:]:
        if not line.strip():
            continue
        indent = _indent(line)
        if indent <= header_indent:
            break
        text = line.strip()
        if name_indent is None:
            name_indent = indent

        if indent <= name_indent and text.endswith(":"):
            if current:
                nets.append(normalize_network(current))
            name = text[:-1].strip()
            skip = name.lower() == "current network information" or name.lower().startswith("awdl")
            current = None if skip else {"ssid": name}
            continue

        if current is None:
            continue
        key, sep, value = text.partition(":")
        key, value = key.strip().lower(), value.strip()
        if not sep or not value:
            continue
        if key == "channel":
            current["channel"], current["channel_width_mhz"] = parse_channel_info(value)
        elif key == "rssi" or "signal" in key:
            rssi, _ = parse_signal_noise(value)
            if rssi is None:
                m = re.search(r"-?\d+", value)
                rssi = m.group(0) if m else None
            current["rssi_dbm"] = rssi
        elif key == "bssid":
            current["bssid"] = value

    if current:
        nets.append(normalize_network(current))
    return nets


def signal_pct_to_dbm(pct):
    pct = to_number(pct)
    return None if pct is None else round(pct / 2 - 100)


def parse_nmcli(output):
    # `nmcli -t -f SSID,BSSID,SIGNAL,CHAN,FREQ dev wifi list`; ":" inside values is escaped as "\:"
    nets = []
    for line in (output or "").splitlines():
        if not line.strip():
            continue
        parts = [p.replace("\\:", ":") for p in re.split(r"(?<!\\):", line)]
        if len(parts) < 4:
            continue
        ssid, bssid, signal, chan = parts[:4]
        freq = parts[4] if len(parts) > 4 else None
        channel = to_int(chan)
        nets.append(normalize_network({
            "ssid": ssid,
            "bssid": bssid,
            "band": band_from_freq(re.sub(r"[^\d.]", "", freq or "")),
            "channel": channel,
            "rssi_dbm": signal_pct_to_dbm(signal),
        }))
    return nets


# ============================================================
# Providers
# ============================================================

class ScanProvider:
    """One OS scanner. scan() returns (networks, source)."""

    name = "none"

    def __init__(self, timeout=SCAN_TIMEOUT_SEC):
        self.timeout = timeout

    def scan(self):
        return [], self.name


class NullScanProvider(ScanProvider):
    name = "unsupported"


class MacScanProvider(ScanProvider):
    name = "system_profiler"

    def supports_wdutil_scan(self):
        return bool(re.search("scan", run_cmd("wdutil help", self.timeout), re.I))

    def scan(self):
        if self.supports_wdutil_scan():
            nets = parse_wdutil_scan(run_cmd("wdutil scan", self.timeout))
            if nets:
                return nets, "wdutil"
        nets = parse_system_profiler(run_cmd("system_profiler SPAirPortDataType", self.timeout))
        return nets, "system_profiler"


class LinuxScanProvider(ScanProvider):
    name = "nmcli"

    def scan(self):
        out = run_cmd("nmcli -t -f SSID,BSSID,SIGNAL,CHAN,FREQ dev wifi list", self.timeout)
        return parse_nmcli(out), self.name


def default_provider():
    system = platform.system().lower()
    if "darwin" in system:
        return MacScanProvider()
    if "linux" in system:
        return LinuxScanProvider()
    return NullScanProvider()


# ============================================================
# Cache
# ============================================================

class ScanCache:
    """Keyless memo: one (timestamp, value) slot that expires after ttl_sec."""

    def __init__(self, ttl_sec=SCAN_CACHE_TTL_SEC, clock=time.time):
        self.ttl_sec = ttl_sec
        self.clock = clock
        self._entry = None
        self._lock = Lock()

    def get(self):
        with self._lock:
            if self._entry is None:
                return None
            ts, value = self._entry
            if self.clock() - ts < self.ttl_sec:
                return value
            return None

    def put(self, value):
        with self._lock:
            self._entry = (self.clock(), value)

    def clear(self):
        with self._lock:
            self._entry = None


SCAN_CACHE = ScanCache()


def get_scan(force=False, cache=None, provider=None) -> ScanResult:
    cache = SCAN_CACHE if cache is None else cache
    if not force:
        cached = cache.get()
        if cached is not None:
            return cached.model_copy(update={"cache_hit": True})

    provider = provider or default_provider()
    t = int(time.time() * 1000)
    networks, source = provider.scan()
    logger.info("scan via %s: %d networks", source, len(networks))

    result = ScanResult(t=t, source=source, networks=networks, cache_hit=False)
    cache.put(result)
    return result


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--force", action="store_true", help="Ignore the scan cache")
    parser.add_argument("--out", help="Also save the scan JSON to this file")
    args = parser.parse_args()

    scan = get_scan(force=args.force)
    payload = json.dumps(scan.model_dump(), indent=2)
    print(payload)

    if args.out:
        Path(args.out).write_text(payload)
        print(f"Saved {args.out} with {len(scan.networks)} networks.")


if __name__ == "__main__":
    main()
