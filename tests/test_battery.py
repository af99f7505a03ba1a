import socket
import threading

import pytest

from barblocks.battery import (
    ApcUpsDevice,
    classify_battery,
    format_time_remaining,
    parse_apc_value,
)
from barblocks.core import BlockError, State


def _recv_exact(conn, size):
    buf = b""
    while len(buf) < size:
        chunk = conn.recv(size - len(buf))
        if not chunk:
            raise ConnectionError("closed")
        buf += chunk
    return buf


class _FakeDaemon:
    """A tiny stand-in for apcupsd's network information server."""

    def __init__(self, status):
        self.status = status
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen()
        self._sock.settimeout(0.2)
        self.address = f"127.0.0.1:{self._sock.getsockname()[1]}"
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2)
                try:
                    size = int.from_bytes(_recv_exact(conn, 2), "big")
                    _recv_exact(conn, size)
                    for key, value in self.status.items():
                        line = f"{key:<9}: {value}\n".encode()
                        conn.sendall(len(line).to_bytes(2, "big") + line)
                    conn.sendall(b"\x00\x00")
                except OSError:
                    pass

    def close(self):
        self._stop.set()
        self._thread.join()
        self._sock.close()


@pytest.fixture
def daemon():
    started = []

    def start(status):
        fake = _FakeDaemon(status)
        started.append(fake)
        return fake

    yield start
    for fake in started:
        fake.close()


def _ups_status(status="ONLINE", charge="100.0 Percent"):
    return {
        "STATUS": status,
        "BCHARGE": charge,
        "TIMELEFT": "42.5 Minutes",
        "NOMPOWER": "1 Watts",
        "LOADPCT": "100.0 Percent",
    }


def _closed_port_address():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"127.0.0.1:{port}"


# parse_apc_value


def test_parse_apc_value_reads_number():
    assert parse_apc_value({"BCHARGE": "87.5 Percent"}, "BCHARGE", "Percent") == 87.5


def test_parse_apc_value_wrong_unit():
    with pytest.raises(BlockError, match="Expected unit for TIMELEFT are Minutes"):
        parse_apc_value({"TIMELEFT": "10.0 Seconds"}, "TIMELEFT", "Minutes")


def test_parse_apc_value_missing_entry():
    with pytest.raises(BlockError, match="NOMPOWER not in apcaccess data"):
        parse_apc_value({}, "NOMPOWER", "Watts")


def test_parse_apc_value_without_unit():
    with pytest.raises(BlockError, match="could not split"):
        parse_apc_value({"LOADPCT": "12.0"}, "LOADPCT", "Percent")


@pytest.mark.parametrize("raw", ["abc Percent", "1_0 Percent", " Percent"])
def test_parse_apc_value_bad_number(raw):
    with pytest.raises(BlockError):
        parse_apc_value({"LOADPCT": raw}, "LOADPCT", "Percent")


# format_time_remaining


def test_format_time_zero_is_empty():
    assert format_time_remaining(0) == ""


def test_format_time_pads_minutes():
    assert format_time_remaining(65) == "1:05"


@pytest.mark.parametrize("minutes", [1, 59, 60, 61, 599, 5999])
def test_format_time_round_trip(minutes):
    hours, mins = format_time_remaining(minutes).split(":")
    assert len(mins) == 2
    assert int(hours) * 60 + int(mins) == minutes


def test_format_time_caps_hours():
    assert format_time_remaining(100 * 60 + 7).startswith("99:")
    assert format_time_remaining(100 * 60 + 7).endswith(":07")


# classify_battery


@pytest.mark.parametrize("status", ["Full", "Not charging"])
def test_classify_full_status(status):
    assert classify_battery(status, 50) == (State.GOOD, True)


def test_classify_above_threshold_is_full():
    assert classify_battery("Discharging", 95, full_threshold=90) == (State.GOOD, True)


def test_classify_charging_is_good():
    assert classify_battery("Charging", 5) == (State.GOOD, False)


def test_classify_unknown_capacity_is_warning():
    assert classify_battery("Discharging", None) == (State.WARNING, False)


@pytest.mark.parametrize(
    "capacity, expected",
    [(15, State.CRITICAL), (16, State.WARNING), (30, State.WARNING), (31, State.INFO),
     (60, State.INFO), (61, State.GOOD)],
)
def test_classify_by_capacity(capacity, expected):
    assert classify_battery("Discharging", capacity) == (expected, False)


def test_classify_between_info_and_good_is_idle():
    result = classify_battery("Discharging", 60, good=70, info=50)
    assert result == (State.IDLE, False)


# ApcUpsDevice


def test_default_address_used_without_port():
    device = ApcUpsDevice("ups", False)
    assert device.con.address[1] == 3551


def test_full_ups(daemon):
    fake = daemon(_ups_status())
    device = ApcUpsDevice(fake.address, False)
    assert device.is_available() is True
    device.refresh_device_info()
    assert device.status() == "Full"
    assert device.capacity() == 100
    assert device.time_remaining() == 42
    assert device.power_consumption() == 1_000_000


@pytest.mark.parametrize(
    "ups_status, charge, expected",
    [
        ("ONBATT", "0.0 Percent", "Empty"),
        ("ONBATT", "50.0 Percent", "Discharging"),
        ("ONLINE", "50.0 Percent", "Charging"),
        ("SHUTTING DOWN", "50.0 Percent", "Unknown"),
    ],
)
def test_status_mapping(daemon, ups_status, charge, expected):
    fake = daemon(_ups_status(ups_status, charge))
    device = ApcUpsDevice(fake.address, False)
    device.refresh_device_info()
    assert device.status() == expected


def test_capacity_capped(daemon):
    fake = daemon(_ups_status(charge="150.0 Percent"))
    device = ApcUpsDevice(fake.address, False)
    device.refresh_device_info()
    assert device.capacity() == 100


def test_commlost_allowed_missing(daemon):
    fake = daemon(_ups_status(status="COMMLOST"))
    device = ApcUpsDevice(fake.address, True)
    assert device.is_available() is False
    device.refresh_device_info()
    assert device.capacity() == 0
    assert device.time_remaining() == 0
    assert device.power_consumption() == 0


def test_commlost_not_allowed(daemon):
    fake = daemon(_ups_status(status="COMMLOST"))
    device = ApcUpsDevice(fake.address, False)
    with pytest.raises(BlockError, match="Unable to communicate with apcupsd"):
        device.refresh_device_info()


def test_unreachable_daemon():
    device = ApcUpsDevice(_closed_port_address(), True)
    assert device.is_available() is False
    device.refresh_device_info()
    assert device.status() == "Unknown"


def test_unreachable_daemon_not_allowed():
    device = ApcUpsDevice(_closed_port_address(), False)
    with pytest.raises(BlockError):
        device.refresh_device_info()


def test_missing_field_raises(daemon):
    status = _ups_status()
    del status["NOMPOWER"]
    fake = daemon(status)
    device = ApcUpsDevice(fake.address, False)
    with pytest.raises(BlockError, match="NOMPOWER not in apcaccess data"):
        device.refresh_device_info()


def test_refresh_follows_daemon_changes(daemon):
    fake = daemon(_ups_status("ONLINE", "100.0 Percent"))
    device = ApcUpsDevice(fake.address, False)
    device.refresh_device_info()
    assert device.status() == "Full"
    fake.status = _ups_status("ONBATT", "80.0 Percent")
    device.refresh_device_info()
    assert device.status() == "Discharging"
    assert device.capacity() == 80