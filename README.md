# barblocks

The data-gathering logic behind a desktop status bar, as a plain Python
library. Each module reads one source of system state and turns it into
numbers, strings and a display level (`State`) that a bar can render.

## Installation

```
pip install .
```

## Modules

- `barblocks.core`: the shared pieces.
  - `Update(interval=None)`: a refresh schedule; `is_once()` is true when no
    interval is set. A negative interval raises `ValueError`.
  - `State`: `IDLE`, `INFO`, `GOOD`, `WARNING`, `CRITICAL`.
  - `BlockError(block, message)` and its subclass `ConfigurationError`; every
    module raises these when it cannot do its work.
  - `CommonBlockConfig` and `extract_common_config(config)`, which pops
    `on_click`, `theme_overrides` and `icons_format` out of a block's config
    dictionary and returns them.
  - `spawn_shell(command)`: starts `sh -c command` in the background.
- `barblocks.apcaccess`: `ApcAccess(addr, timeout_seconds)` talks to an
  apcupsd daemon over TCP (`"host:port"`, IPv4). `get_status()` returns its
  status table as a dictionary; `is_available(status)` is false when the
  status is `None` or reports `COMMLOST`. `encode_frame` and `parse_status`
  handle the length-prefixed protocol.
- `barblocks.power_supply`: `PowerSupplyDevice(device, allow_missing=False,
  root="/sys/class/power_supply")` reads a battery from sysfs:
  `refresh_device_info()`, `status()`, `capacity()` (percent, capped at 100),
  `time_remaining()` (minutes) and `power_consumption()` (µW).
  `default_device(root)` picks the first `BAT*` entry, or `BAT0`.
- `barblocks.battery`: `ApcUpsDevice(device, allow_missing=False)` offers the
  same readings for a UPS through apcupsd (a device without `:` uses
  `localhost:3551`). `parse_apc_value` reads `"<number> <unit>"` entries;
  `format_time_remaining(minutes)` renders `H:MM` (empty for zero);
  `classify_battery(status, capacity, ...)` returns `(State, is_full)`.
- `barblocks.backlight`: `open_backlit_device(device=None, root_scaling=1.0,
  base="/sys/class/backlight")` returns a `BacklitDevice` with `brightness()`
  and `set_brightness(value)` in percent. When the brightness file cannot be
  opened for writing, it falls back to `busctl` and logind's `SetBrightness`.
  Also `clamp_root_scaling`, `next_cycle_index` and `brightness_icon`.
- `barblocks.cpu`: `CpuMonitor.sample(stat_text)` turns successive
  `/proc/stat` snapshots into an average and per-core utilisation in `[0, 1]`.
  Also `parse_frequencies` (from `/proc/cpuinfo`, in Hz), `barchart`,
  `boost_status` and `cpu_state`.
- `barblocks.disk_space`: `disk_usage(path)` returns a `DiskUsage`;
  `alert_value(usage, info_type, unit, alert_absolute)` and
  `compute_state(value, warning, alert, alert_type)` decide the state;
  `unit_divisor` accepts `B`, `KB`, `MB`, `GB`, `TB`.
- `barblocks.packages`: `apt_updates_list(config_path)` (with a private
  configuration from `write_apt_config()`) and `dnf_updates_list()` run the
  package managers through `sh`; `apt_update_count`, `dnf_update_count`,
  `has_matching_update`, `compile_optional_regex` and `update_state` interpret
  the output.
- `barblocks.docker`: `fetch_docker_info(socket_path="/var/run/docker.sock")`
  queries the engine's `/info` endpoint over its Unix socket and returns a
  `DockerStatus`; `parse_docker_info` decodes a reply.
- `barblocks.github`: `Notifications(api_server, token, fetch=None)` iterates
  over the reasons of unread notifications, following `Link` pagination;
  `aggregate` counts them per reason with a `total`, `get_state` maps the
  counts to a `State`, and `parse_links_header` reads a `Link` header.
- `barblocks.custom`: `CustomCommand(command=None, cycle=None, shell=None)`
  runs a command (or the current entry of a cycle, moved on by `advance()`)
  in `$SHELL` and returns its trimmed output; `parse_json_output` reads
  `{"text", "icon", "state"}` objects into a `CustomOutput`.

## Examples

A sysfs battery:

```python
from barblocks.battery import classify_battery, format_time_remaining
from barblocks.power_supply import PowerSupplyDevice, default_device

device = PowerSupplyDevice(default_device())
device.refresh_device_info()
status = device.status()
capacity = device.capacity()
state, is_full = classify_battery(status, capacity)
print(capacity, format_time_remaining(device.time_remaining()), state, is_full)
```

A CPU sample:

```python
from pathlib import Path
from barblocks.cpu import CpuMonitor, barchart, cpu_state

monitor = CpuMonitor()
average, per_core = monitor.sample(Path("/proc/stat").read_text())
print(barchart(per_core), cpu_state(average * 100))
```

GitHub notifications with a stand-in fetch function:

```python
from barblocks.github import Notifications, aggregate, get_state

def fetch(url, headers):
    return [{"reason": "mention"}, {"reason": "comment"}], []

counts = aggregate(Notifications("https://api.github.com", "token", fetch))
print(counts, get_state(["mention"], None, None, None, counts))
```

## What the package does not do

It is a library of readers and rules, not a status bar. There is no command to
run, no loop that schedules refreshes (`Update` only describes one), no output
in any bar protocol, no handling of click or scroll events, and no icons,
themes or text templates. Rendering the values and acting on clicks is left to
the program that uses it.

## Running the tests

```
pip install .[test]
pytest
```