import platform, re, json, argparse, logging

from models import PingStats
from scanner import run_cmd
from settings import PING_COUNT

logger = logging.getLogger(__name__)

IPV4_RE = r"(\d{1,3}(?:\.\d{1,3}){3})"


def parse_ping_output(output) -> PingStats:
    """
    Pull loss and round-trip stats out of BSD or Linux ping output.

    Jitter is approximated as max - min RTT. Missing pieces come back as None
    and are logged, never raised.
    """
    if not output:
        logger.warning("no ping output provided, returning empty metrics")
        return PingStats()

    loss_m = re.search(r"(\d+(?:\.\d+)?)%\s*packet loss", output)
    rtt_m = (re.search(r"round-trip.*?=\s*([\d.]+)/([\d.]+)/([\d.]+)/([\d.]+)\s*ms", output)
             or re.search(r"rtt.*?=\s*([\d.]+)/([\d.]+)/([\d.]+)/([\d.]+)\s*ms", output))

    loss = float(loss_m.group(1)) if loss_m else None
    rtt_min = rtt_avg = rtt_max = None
    if rtt_m:
        rtt_min, rtt_avg, rtt_max = (float(rtt_m.group(i)) for i in (1, 2, 3))

    if loss is None and rtt_avg is None:
        logger.error("could not parse packet loss or RTT; unexpected ping output format")
    elif loss is None:
        logger.warning("could not parse packet loss from ping output")
    elif rtt_avg is None:
        logger.warning("could not parse RTT min/avg/max from ping output")

    return PingStats(
        loss_pct=loss,
        avg_ms=round(rtt_avg, 1) if rtt_avg is not None else None,
        min_ms=round(rtt_min, 1) if rtt_min is not None else None,
        max_ms=round(rtt_max, 1) if rtt_max is not None else None,
        jitter_ms=round(rtt_max - rtt_min, 1) if rtt_m else None,
    )


def parse_gateway(route_output="", netstat_output=""):
    gateway = re.search(r"gateway:\s+" + IPV4_RE, route_output or "")
    if gateway:
        return gateway.group(1)
    # linux: "default via 192.168.1.1 dev wlan0"
    via = re.search(r"default\s+via\s+" + IPV4_RE, route_output or "")
    if via:
        return via.group(1)

    for row in (netstat_output or "").splitlines():
        row = row.strip()
        if row.startswith("default") or row.startswith("0.0.0.0"):
            parts = row.split()
            return parts[1] if len(parts) > 1 else None
    return None


def get_gateway_ip():
    if "linux" in platform.system().lower():
        route = run_cmd("ip route show default", 3)
    else:
        route = run_cmd("route -n get default", 3)
    gateway = parse_gateway(route)
    if gateway:
        return gateway
    return parse_gateway(netstat_output=run_cmd("netstat -rn", 3))


def ping_gateway(count=PING_COUNT) -> PingStats:
    gateway = get_gateway_ip()
    if not gateway:
        return PingStats()
    if "windows" in platform.system().lower():
        logger.info("gateway ping stats are not parsed on windows")
        return PingStats(gateway=gateway)
    flag = "-W 1" if "linux" in platform.system().lower() else "-W 1000"
    out = run_cmd(f"ping -c {int(count)} {flag} {gateway}", timeout=count * 2 + 4)
    stats = parse_ping_output(out)
    return stats.model_copy(update={"gateway": gateway})


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--gateway-only", action="store_true", help="Only resolve the default gateway")
    parser.add_argument("--count", type=int, default=PING_COUNT)
    args = parser.parse_args()

    if args.gateway_only:
        print(json.dumps({"gateway": get_gateway_ip()}, indent=2))
        return
    print(json.dumps(ping_gateway(args.count).model_dump(), indent=2))


if __name__ == "__main__":
    main()
