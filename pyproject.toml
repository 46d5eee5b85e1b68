[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "grorm"
version = "0.1.1"
description = "SQL value types, query builders, lightweight PostgreSQL and MySQL wire clients and a file-backed SQLite-style store"
requires-python = ">=3.10"
dependencies = []
keywords = ["sql", "query-builder", "postgresql", "mysql", "sqlite", "wire-protocol"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["grorm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
