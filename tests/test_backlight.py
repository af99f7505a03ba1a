import pytest

from barblocks.backlight import (
    BacklitDevice,
    brightness_icon,
    clamp_root_scaling,
    next_cycle_index,
    open_backlit_device,
)
from barblocks.core import BlockError


def make_device(base, name, max_brightness, actual=None):
    path = base / name
    path.mkdir(parents=True)
    (path / "max_brightness").write_text(f"{max_brightness}\n")
    (path / "brightness").write_text(f"{max_brightness}\n")
    if actual is not None:
        (path / "actual_brightness").write_text(f"{actual}\n")
    return path


def test_brightness_linear_reads_actual_file(tmp_path):
    path = make_device(tmp_path, "intel_backlight", 100, actual=50)
    device = BacklitDevice(path)
    assert device.brightness_file() == path / "actual_brightness"
    assert device.brightness() == 50


def test_amdgpu_uses_brightness_file(tmp_path):
    path = make_device(tmp_path, "amdgpu_bl0", 255)
    device = BacklitDevice(path)
    assert device.brightness_file() == path / "brightness"
    assert device.brightness() == 100


def test_brightness_capped_at_hundred(tmp_path):
    path = make_device(tmp_path, "acpi_video0", 100, actual=500)
    assert BacklitDevice(path).brightness() == 100


@pytest.mark.parametrize("value", [30, 50, 75, 100])
@pytest.mark.parametrize("root", [1.0, 2.5])
def test_set_then_read_round_trip(tmp_path, value, root):
    path = make_device(tmp_path, "amdgpu_bl0", 10000)
    device = BacklitDevice(path, root)
    device.set_brightness(value)
    assert device.brightness() == value


def test_set_brightness_above_hundred_writes_max(tmp_path):
    path = make_device(tmp_path, "amdgpu_bl0", 10000)
    BacklitDevice(path).set_brightness(150)
    assert (path / "brightness").read_text() == "10000"


def test_set_brightness_zero_writes_one(tmp_path):
    path = make_device(tmp_path, "amdgpu_bl0", 10000)
    BacklitDevice(path).set_brightness(0)
    assert (path / "brightness").read_text() == "1"


def test_unparsable_brightness_file(tmp_path):
    path = make_device(tmp_path, "intel_backlight", 100)
    (path / "actual_brightness").write_text("abc\n")
    with pytest.raises(BlockError):
        BacklitDevice(path).brightness()


def test_missing_max_brightness(tmp_path):
    (tmp_path / "broken").mkdir()
    with pytest.raises(BlockError):
        BacklitDevice(tmp_path / "broken")


def test_open_named_device(tmp_path):
    path = make_device(tmp_path, "intel_backlight", 100, actual=20)
    device = open_backlit_device("intel_backlight", 1.0, tmp_path)
    assert device.device_path == path
    assert device.brightness() == 20


def test_open_missing_device(tmp_path):
    with pytest.raises(BlockError, match="does not exist"):
        open_backlit_device("nope", 1.0, tmp_path)


def test_open_default_device(tmp_path):
    path = make_device(tmp_path, "only_one", 100, actual=10)
    assert open_backlit_device(None, 1.0, tmp_path).device_path == path


def test_open_default_with_no_devices(tmp_path):
    with pytest.raises(BlockError, match="No backlit devices found"):
        open_backlit_device(None, 1.0, tmp_path)


def test_root_scaling_is_clamped(tmp_path):
    assert clamp_root_scaling(0.01) == 0.1
    assert clamp_root_scaling(50.0) == 10.0
    assert clamp_root_scaling(2.0) == 2.0
    path = make_device(tmp_path, "intel_backlight", 100, actual=1)
    assert BacklitDevice(path, 100.0).root_scaling == 10.0


def test_cycle_advances_from_exact_match():
    assert next_cycle_index([5, 100], 0, 5) == 1
    assert next_cycle_index([5, 100], 1, 100) == 0


def test_cycle_restarts_at_nearest_value():
    assert next_cycle_index([5, 100], 0, 100) == 0
    assert next_cycle_index([5, 50, 100], 0, 48) == 2


def test_cycle_tie_prefers_entry_after_index():
    assert next_cycle_index([10, 30], 1, 20) == 0
    assert next_cycle_index([10, 30], 0, 20) == 1


def test_cycle_result_in_range():
    cycle = [1, 20, 40, 60, 80]
    for index in range(len(cycle)):
        for current in range(0, 101, 7):
            assert 0 <= next_cycle_index(cycle, index, current) < len(cycle)


def test_cycle_empty():
    with pytest.raises(ValueError):
        next_cycle_index([], 0, 50)


def test_brightness_icons():
    assert brightness_icon(0) == "backlight_empty"
    assert brightness_icon(6) == "backlight_empty"
    assert brightness_icon(7) == "backlight_1"
    assert brightness_icon(100) == "backlight_full"
    assert brightness_icon(100, invert=True) == "backlight_empty"
    assert brightness_icon(0, invert=True) == "backlight_full"