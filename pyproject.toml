[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xv6sim"
version = "0.1.0"
description = "A user-space model of a small Unix-like teaching kernel: on-disk file system, buffer cache, write-ahead log, pipes, console and tools"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "operating-system", "simulation", "teaching", "journal", "disk-image"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xv6sim = "xv6sim.cli:main"
xv6sim-mkfs = "xv6sim.mkfs:main"
xv6sim-grep = "xv6sim.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["xv6sim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
