[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "weathersrv"
version = "0.1.0"
description = "Signed JSON-over-HTTPS weather forecast service backed by a grid forecast database"
requires-python = ">=3.10"
keywords = ["weather", "forecast", "http", "api", "lambert-conformal", "hmac", "flask"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Scientific/Engineering :: Atmospheric Science",
]
dependencies = [
    "cryptography",
    "flask",
    "redis",
    "sqlalchemy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
weathersrv = "weathersrv.server:main"

[tool.hatch.build.targets.wheel]
packages = ["weathersrv"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
