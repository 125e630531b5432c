import argparse, json
from collections import defaultdict

from pydantic import ValidationError

from models import BandReport, CongestionReport, ObservedNetwork, Recommendation, to_number

RSSI_FLOOR = -90
RSSI_CEIL = -30
WEIGHT_EXPONENT = 1.8
DEFAULT_RSSI = -80

MIN_CHANNEL = 1
MAX_CHANNEL = 165

# share of a 2.4GHz network's weight that leaks onto channel +/-1, +/-2
OVERLAP_24 = {1: 0.6, 2: 0.3}

PREFERRED_24 = (1, 6, 11)
FALLBACK_5 = (36, 40, 44, 48)
WIDE_5_MAX_SCORE = 2.0

MISSING_RSSI_NOTE = " RSSI missing for some networks; using low default weight."


def clamp(value, low, high):
    return min(high, max(low, value))


def rssi_to_weight(rssi):
    """
    Map an RSSI reading to a congestion weight in [0, 1].

    The reading is clamped to [-90, -30] dBm first, so anything weaker than
    -90 weighs the same as -90. The curve is convex: a -45 dBm neighbour
    counts far more than two -75 dBm ones.

    Returns None when rssi is not a usable number.
    """
    rssi = to_number(rssi)
    if rssi is None:
        return None
    normalized = (clamp(rssi, RSSI_FLOOR, RSSI_CEIL) - RSSI_FLOOR) / (RSSI_CEIL - RSSI_FLOOR)
    return normalized ** WEIGHT_EXPONENT


def weight_for_network(rssi):
    weight = rssi_to_weight(rssi)
    if weight is not None:
        return weight
    return rssi_to_weight(DEFAULT_RSSI)


def add_score(scores, channel, value):
    if not channel:
        return
    if channel < MIN_CHANNEL or channel > MAX_CHANNEL:
        return
    scores[channel] += value


def compute_24_scores(networks):
    scores = defaultdict(float)
    missing = 0
    for n in networks:
        if n.band != "2.4" or not n.channel:
            continue
        if to_number(n.rssi_dbm) is None:
            missing += 1
        weight = weight_for_network(n.rssi_dbm)
        add_score(scores, n.channel, weight)
        for offset, share in OVERLAP_24.items():
            add_score(scores, n.channel - offset, weight * share)
            add_score(scores, n.channel + offset, weight * share)
    return dict(scores), missing


def compute_5_scores(networks):
    scores = defaultdict(float)
    missing = 0
    for n in networks:
        if n.band != "5" or not n.channel:
            continue
        if to_number(n.rssi_dbm) is None:
            missing += 1
        add_score(scores, n.channel, weight_for_network(n.rssi_dbm))
    return dict(scores), missing


def pick_lowest_channel(scores, candidates):
    # first candidate holding the minimum wins
    best_channel = candidates[0]
    best_score = scores.get(best_channel, 0.0)
    for ch in candidates:
        score = scores.get(ch, 0.0)
        if score < best_score:
            best_channel, best_score = ch, score
    return best_channel, best_score


def recommend_width_5ghz(max_score):
    if max_score > WIDE_5_MAX_SCORE:
        return 40, "Higher congestion detected; 40 MHz should be more stable."
    return 80, "Low congestion detected; 80 MHz should be fine."


def as_networks(items):
    # raw dicts are accepted too; anything unparseable simply contributes nothing
    networks = []
    for item in items or []:
        if isinstance(item, ObservedNetwork):
            networks.append(item)
            continue
        try:
            networks.append(ObservedNetwork.model_validate(item))
        except ValidationError:
            continue
    return networks


def compute_congestion(networks) -> CongestionReport:
    networks = as_networks(networks)
    scores24, missing24 = compute_24_scores(networks)
    scores5, missing5 = compute_5_scores(networks)

    ch24, score24 = pick_lowest_channel(scores24, PREFERRED_24)
    reason24 = f"Lowest congestion among 1/6/11 (score {score24:.2f})."
    if missing24:
        reason24 += MISSING_RSSI_NOTE

    candidates5 = tuple(sorted(scores5)) or FALLBACK_5
    ch5, _ = pick_lowest_channel(scores5, candidates5)
    width5, reason5 = recommend_width_5ghz(max(scores5.values(), default=0.0))
    if missing5:
        reason5 += MISSING_RSSI_NOTE

    return CongestionReport(
        band24=BandReport(
            scores_by_channel=scores24,
            recommended=Recommendation(channel=ch24, width_mhz=20, reason=reason24),
            missing_rssi=missing24,
        ),
        band5=BandReport(
            scores_by_channel=scores5,
            recommended=Recommendation(channel=ch5, width_mhz=width5, reason=reason5),
            missing_rssi=missing5,
        ),
    )


def main():
    from scanner import get_scan

    parser = argparse.ArgumentParser()
    parser.add_argument("--force", action="store_true", help="Ignore the scan cache")
    args = parser.parse_args()

    scan = get_scan(force=args.force)
    report = compute_congestion(scan.networks)
    print(json.dumps(report.model_dump(by_alias=True), indent=2))


if __name__ == "__main__":
    main()
