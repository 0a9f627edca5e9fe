# ptupdater

Host-side building blocks for working with touch-controller firmware on
Linux. The package reaches the device through a `/dev/hidrawN` node and
provides the helpers around that conversation: levelled logging, CRC
calculation, base64 decoding, firmware version decoding, device state
enumerations, kernel driver detection and I2C bus discovery.

The package has no third-party dependencies.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `ptupdater.log`: `Level` (QUIET, FATAL, RESULT, ERROR, WARNING, INFO,
  DEBUG, PTC, NOLEVEL_NOPREFIX) and `Logger`. A message is printed when
  its level is within the verbosity (`set_verbose_level`, capped at
  DEBUG); FATAL and ERROR go to stderr, the rest to stdout, or everything
  to `daemon_log_file` when that is set. `set_timestamps(levels)` adds a
  monotonic uptime stamp to lines of those levels. FATAL, ERROR and
  WARNING messages are also written to `csv_file` when set, and appended
  to the kernel log (`kmsg_path`, `/dev/kmsg` by default; failures to
  open it are ignored); they set `kmsg_written`, which
  `clear_kmsg_written()` resets. `get_logger()` returns the process-wide
  logger and `output(level, message)` writes through it. The default
  verbosity is FATAL.
- `ptupdater.crc16`: `crc16_ccitt(data, seed=0xFFFF)`, the table-driven,
  non-reflected CRC-16 with polynomial 0x1021.
- `ptupdater.encoding`: `b64_decode(text)`, a lenient base64 decoder that
  skips characters outside the alphabet and does not require padding.
- `ptupdater.dut_state`: the `DutState`, `DutExec` and `DutCategory`
  enumerations (`DutState` and `DutExec` members have a `label`), and
  `set_aux_mcu_active_duration_seconds` /
  `get_aux_mcu_active_duration_seconds` (0 to 255 seconds).
- `ptupdater.dut_driver`: `get_dut_driver(driver_dir)` looks in
  `/sys/bus/i2c/drivers` for an `i2c_hid` or `pt_i2c_adapter` entry and
  returns a `DutDriver`, falling back to `DutDriver.I2C_HID` when neither
  is listed and returning `DutDriver.ERROR` when the directory cannot be
  read. The result is cached; `reset_dut_driver_cache()` forgets it.
- `ptupdater.fw_version`: the `FwVersion` dataclass and
  `FwVersion.from_bin_header(header)`, which decodes major, minor,
  revision control (big-endian), config version (big-endian) and silicon
  id (little-endian) from any object carrying those header fields.
- `ptupdater.files`: `file_copy(src, dst)` returns the number of bytes
  copied; `file_insert(source_file, working_dir, pattern, text)` writes
  `text` after every line matching a regular expression, replacing the
  file atomically through a temporary file; `fpoll_inbound_data(stream,
  timeout_us)` waits for input and returns a `PollStatus`.
- `ptupdater.i2cbusses`: `gather_i2c_busses()` lists `I2CAdapter`
  records from `/proc/bus/i2c` or, failing that, from sysfs;
  `lookup_i2c_bus(arg)` accepts a bus number (decimal, octal or hex) or
  an adapter name; `parse_i2c_address(arg)` accepts 0x03 to 0x77;
  `open_i2c_dev(bus, quiet)` opens `/dev/i2c/N` or `/dev/i2c-N`;
  `set_slave_addr(fd, address, force)` selects the chip. Resolution
  failures raise `I2CError`.
- `ptupdater.hid`: `HidReportId`, `HidDescriptor` (`pack` / `unpack`),
  `HidOutputPip3Command.pack()` and `HidInputPip3Response.unpack(data)`
  for the PIP3 report headers.
- `ptupdater.channel`: the abstract `Channel` interface (`setup`,
  `get_hid_descriptor`, `send_report`, `get_report`, `teardown`) and
  `ChannelType`.
- `ptupdater.hidraw`: `HidrawChannel(node, hid_desc)`, a `Channel` over a
  hidraw node. `setup(report_id)` starts a background thread that keeps
  matching input reports in a `ReportBuffer` (a bounded FIFO that drops
  the oldest report when full); `get_report(apply_timeout, timeout)`
  returns a `(PollStatus, bytes)` pair. The HID descriptor is built from
  the node's ioctls and from probing the input and output report sizes;
  `get_report_descriptor()` returns the raw report descriptor.
  `auto_detect_hidraw_node(vendor_id, product_id, dev_dir)` returns the
  path of the node whose device matches. Failures raise `HidrawError`.

## Example

```python
from ptupdater.crc16 import crc16_ccitt
from ptupdater.log import Level, get_logger, output

get_logger().set_verbose_level(Level.INFO)
output(Level.INFO, f"CRC: 0x{crc16_ccitt(b'123456789'):04X}\n")
```

Talking to a device:

```python
from ptupdater.hid import HidReportId
from ptupdater.hidraw import HidrawChannel, auto_detect_hidraw_node

channel = HidrawChannel(auto_detect_hidraw_node(0x04F3, 0x0001))
channel.setup(HidReportId.ANY)
try:
    status, report = channel.get_report(apply_timeout=True, timeout=1.0)
finally:
    channel.teardown()
```

Most device operations need read/write access to the `/dev/hidraw*` or
`/dev/i2c-*` nodes, which usually means running as root.

## What this package does not do

- It installs no command-line tool; everything is used from Python.
- It does not implement the PIP2 or PIP3 command sets, so it cannot by
  itself read the firmware version from the device, switch device states
  or write firmware images to flash. `FwVersion` decodes a header you
  already have, and `DutState` only names the states.
- The only `Channel` implementation is `HidrawChannel`; there is no
  channel over I2C-DEV, although `ptupdater.i2cbusses` can find and open
  the buses.