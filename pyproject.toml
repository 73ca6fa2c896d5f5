[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gradientpm"
version = "2.0.0"
description = "A small binary package manager: installs .apkg archives, tracks files in SQLite and resolves dependencies from repository indexes."
requires-python = ">=3.10"
keywords = ["package-manager", "apkg", "repository", "dependencies", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Software Distribution",
    "Topic :: System :: Installation/Setup",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
gradient = "gradientpm.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gradientpm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
