[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mcwlaser"
version = "0.1.0"
description = "Serial-line controller for OsTech-protocol laser drivers, with an interactive console"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = ["laser", "serial", "ostech", "rs232", "instrument control"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Terminals :: Serial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
mcwlaser = "mcwlaser.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mcwlaser"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
