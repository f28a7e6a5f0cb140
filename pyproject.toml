[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "owaf"
version = "0.1.1"
description = "A small host-based reverse proxy with per-client rate limiting and request logging"
requires-python = ">=3.11"
keywords = ["reverse-proxy", "rate-limit", "waf", "aiohttp", "sqlite", "hcl"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "aiohttp>=3.9",
    "aiosqlite>=0.19",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[project.scripts]
owaf = "owaf.app:main"
owaf-server = "owaf.server_api:main"

[tool.hatch.build.targets.wheel]
packages = ["owaf"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]
