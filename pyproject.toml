[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gget"
version = "0.1.0"
description = "Download gno.land packages over RPC, resolve their dependencies and fetch them in parallel"
requires-python = ">=3.10"
keywords = ["gno", "gno.land", "package-manager", "rpc", "dependencies", "downloader"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Software Distribution",
]
dependencies = [
    "httpx",
    "cachetools",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
]

[project.scripts]
gget = "gget.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gget"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
