[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "barblocks"
version = "0.1.0"
description = "Status bar data sources: batteries, UPS, backlight, CPU, disk space, package updates, Docker, GitHub notifications and shell commands"
requires-python = ">=3.10"
dependencies = []
keywords = ["status-bar", "monitoring", "battery", "backlight", "cpu", "apcupsd", "docker"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["barblocks"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
