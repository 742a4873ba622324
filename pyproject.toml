[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "signalhub"
version = "0.1.0"
description = "WebSocket signaling server for establishing peer-to-peer WebRTC connections, with full-mesh, client-server and matchmaking topologies."
requires-python = ">=3.10"
keywords = ["webrtc", "signaling", "websocket", "peer-to-peer", "matchmaking", "aiohttp"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Communications",
    "Topic :: Games/Entertainment",
]
dependencies = [
    "aiohttp>=3.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[project.scripts]
signalhub-serve = "signalhub.serve:main"
signalhub-matchmaking = "signalhub.matchmaking.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["signalhub"]

[tool.hatch.build.targets.sdist]
include = ["signalhub", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
