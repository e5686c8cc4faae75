[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "paxi"
version = "0.1.0"
description = "Building blocks for Paxos-style replicated key-value stores, with a linearizability checker"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "paxos",
    "consensus",
    "replication",
    "distributed-systems",
    "linearizability",
    "quorum",
    "key-value-store",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
paxi-server = "paxi.rlpaxos.replica:main"
paxi-checker = "paxi.history:main"

[tool.hatch.build.targets.wheel]
packages = ["paxi"]

[tool.hatch.build.targets.sdist]
include = ["paxi", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
