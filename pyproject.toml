[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sealkit"
version = "0.1.0"
description = "Sector sealing helpers: sector parameters, commit-phase-1 proof files, Merkle inclusion proofs and commitment access"
requires-python = ">=3.10"
dependencies = []
keywords = ["sealing", "proof-of-replication", "merkle", "commitments", "sector"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sealkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"
