[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sma_chg_log"
version = "0.1.0"
description = "Fetch charging events from an SMA ennexOS device and export charging sessions as JSON, CSV or PDF"
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "sma",
    "ennexos",
    "ev-charger",
    "wallbox",
    "charging",
    "energy",
    "report",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
sma_chg_log = "sma_chg_log.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["sma_chg_log"]

[tool.hatch.build.targets.sdist]
include = [
    "sma_chg_log",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
