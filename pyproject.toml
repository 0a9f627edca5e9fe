[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ptupdater"
version = "0.1.0"
description = "Host-side helpers for talking to touch-controller firmware over HIDRAW and I2C on Linux"
requires-python = ">=3.10"
dependencies = []
keywords = ["touchscreen", "firmware", "hidraw", "i2c", "crc16", "hid"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ptupdater"]

[tool.pytest.ini_options]
addopts = "-ra"
