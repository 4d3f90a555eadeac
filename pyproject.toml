[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "picoemu"
version = "0.1.0"
description = "Register-level emulation of the RP2040 microcontroller and the Raspberry Pi Pico board"
requires-python = ">=3.10"
dependencies = []
keywords = ["rp2040", "raspberry-pi-pico", "emulator", "uart", "gpio", "timer", "microcontroller"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["picoemu"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
