[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ftx"
version = "0.1.0"
description = "Secure TCP file transfer with per-chunk BLAKE3 verification, resume and TLS 1.3"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "file-transfer",
    "tcp",
    "tls",
    "mtls",
    "blake3",
    "crc32c",
    "resume",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: File Transfer Protocol (FTP)",
    "Topic :: System :: Networking",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "cryptography",
]

[project.scripts]
ftx = "ftx.cli:main"
ftx-bench = "ftx.bench:main"

[tool.hatch.build.targets.wheel]
packages = ["ftx"]

[tool.hatch.build.targets.sdist]
include = [
    "ftx",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP", "SIM"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
