import platform, re, json, logging

from models import WifiInfo, band_from_freq, to_int, to_number
from scanner import parse_channel_info, run_cmd, signal_pct_to_dbm
from settings import META_TIMEOUT_SEC, WIFI_IFACE

logger = logging.getLogger(__name__)

AIRPORT = "/System/Library/PrivateFrameworks/Apple80211.framework/Versions/Current/Resources/airport"


def _first(pattern, text, flags=0):
    m = re.search(pattern, text or "", flags)
    return m.group(1).strip() if m else None


def parse_band_from_channel(channel):
    # airport prints "channel: 149,80"
    if not channel:
        return None
    ch = to_int(str(channel).split(",")[0])
    if ch is None:
        return None
    return "2.4" if 1 <= ch <= 14 else "5"


def parse_mac_airport(output):
    channel = _first(r"\n\s*channel: ([\d,]+)", output)
    ch, width = parse_channel_info(channel)
    return WifiInfo(
        ssid=_first(r"\n\s*SSID: (.+)", output),
        bssid=_first(r"\n\s*BSSID: ([0-9a-f:]+)", output, re.I),
        rssi_dbm=to_number(_first(r"\n\s*agrCtlRSSI: (-?\d+)", output)),
        noise_dbm=to_number(_first(r"\n\s*agrCtlNoise: (-?\d+)", output)),
        band=parse_band_from_channel(channel),
        channel=ch,
        channel_width_mhz=width,
    )


def parse_wdutil_channel(line):
    # "2g1/20", "5g149/80", "6g37/160"
    if not line:
        return None, None, None
    token = _first(r"(2g|5g|6g|2ghz|5ghz|6ghz)", line, re.I)
    band = None
    if token:
        band = {"2": "2.4", "5": "5", "6": "6"}[token[0]]
    rest = re.sub(r"^\s*[256]g(hz)?", "", line, flags=re.I)
    channel, width = parse_channel_info(rest)
    return band, channel, width


def parse_wdutil_info(output):
    signal_noise = re.search(r"\n\s*Signal\s*/\s*Noise\s*:\s*(-?\d+)\s*dBm\s*/\s*(-?\d+)", output or "", re.I)
    rssi = _first(r"\n\s*RSSI\s*:\s*(-?\d+)", output)
    noise = _first(r"\n\s*Noise\s*:\s*(-?\d+)", output)
    if rssi is None and signal_noise:
        rssi = signal_noise.group(1)
    if noise is None and signal_noise:
        noise = signal_noise.group(2)

    band, channel, width = parse_wdutil_channel(_first(r"\n\s*Channel\s*:\s*([^\n]+)", output))
    return WifiInfo(
        ssid=_first(r"\n\s*SSID\s*:\s*(.+)", output),
        bssid=_first(r"\n\s*BSSID\s*:\s*([0-9a-f:]+)", output, re.I),
        rssi_dbm=to_number(rssi),
        noise_dbm=to_number(noise),
        band=band,
        channel=channel,
        channel_width_mhz=width,
    )


def parse_linux_iw(output):
    freq = _first(r"freq: (\d+)", output)
    return WifiInfo(
        ssid=_first(r"SSID: (.+)", output),
        bssid=_first(r"Connected to ([0-9a-f:]{17})", output, re.I),
        rssi_dbm=to_number(_first(r"signal: (-?\d+)", output)),
        band=band_from_freq(freq),
    )


def parse_windows_netsh(output):
    channel = to_int(_first(r"\n\s*Channel\s*:\s*(\d+)", output))
    return WifiInfo(
        ssid=_first(r"\n\s*SSID\s*:\s*(.+)", output),
        bssid=_first(r"\n\s*BSSID\s*:\s*([0-9a-f:]+)", output, re.I),
        rssi_dbm=signal_pct_to_dbm(_first(r"\n\s*Signal\s*:\s*(\d+)%", output)),
        band=parse_band_from_channel(channel),
        channel=channel,
    )


def get_wifi_info(iface=WIFI_IFACE) -> WifiInfo:
    system = platform.system().lower()
    if "darwin" in system:
        info = parse_mac_airport(run_cmd(f"{AIRPORT} -I", META_TIMEOUT_SEC))
        if info.rssi_dbm is None:
            # airport is gone on recent macOS; wdutil needs passwordless sudo
            info = parse_wdutil_info(run_cmd("sudo -n wdutil info", META_TIMEOUT_SEC))
        return info
    if "linux" in system:
        return parse_linux_iw(run_cmd(f"iw dev {iface} link", META_TIMEOUT_SEC))
    if "windows" in system:
        return parse_windows_netsh(run_cmd("netsh wlan show interfaces", META_TIMEOUT_SEC))
    logger.info("no wifi info source for platform %s", system)
    return WifiInfo()


if __name__ == "__main__":
    print(json.dumps(get_wifi_info().model_dump(), indent=2))
