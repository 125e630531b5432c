"""Pytest configuration and fixtures."""

import pytest
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from models import MetricConfig, ObservedNetwork, Sample  # noqa: E402


@pytest.fixture
def sample_networks():
    """The four-network neighbourhood used by the channel scoring checks."""
    return [
        ObservedNetwork(ssid="A", rssi_dbm=-45, channel=1, band="2.4"),
        ObservedNetwork(ssid="B", rssi_dbm=-50, channel=6, band="2.4"),
        ObservedNetwork(ssid="C", rssi_dbm=-70, channel=36, band="5"),
        ObservedNetwork(ssid="D", rssi_dbm=-65, channel=40, band="5"),
    ]


@pytest.fixture
def rssi_metric():
    return MetricConfig(key="rssi_dbm", label="RSSI (dBm)", good=-50, bad=-80)


@pytest.fixture
def latency_metric():
    return MetricConfig(key="ping_avg_ms", label="Latency to router (ms)", good=2, bad=30)


@pytest.fixture
def survey_samples():
    return [
        Sample(x=100, y=100, metrics={"rssi_dbm": -50}, band="5"),
        Sample(x=300, y=100, metrics={"rssi_dbm": -70}, band="5"),
        Sample(x=200, y=300, metrics={"rssi_dbm": -60}, band="2.4"),
    ]


@pytest.fixture
def tmp_store(tmp_path):
    from store import SampleStore
    return SampleStore(tmp_path / "data")
