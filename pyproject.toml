[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ghostscan"
version = "0.1.1"
description = "Linux host scanner that looks for rootkit, persistence and tampering indicators"
requires-python = ">=3.10"
dependencies = []
keywords = ["security", "rootkit", "linux", "forensics", "incident-response", "scanner"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Information Technology",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ghostscan = "ghostscan.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["ghostscan"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
