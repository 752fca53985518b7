[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "scluner"
version = "3.0.0"
description = "A chat bot core that remembers guild messages, replays them at random with playful mutations, and keeps CBOR backups of its memory."
requires-python = ">=3.10"
keywords = ["chat", "bot", "chatbot", "cbor", "backup", "asyncio"]
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
    "Framework :: AsyncIO",
    "Topic :: Communications :: Chat",
]
dependencies = [
    "cbor2",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["scluner"]

[tool.hatch.build.targets.sdist]
include = ["scluner", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
