[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gophermart"
version = "0.1.0"
description = "HTTP service for a loyalty programme: user registration, Luhn-checked order uploads and a database-backed processing queue"
requires-python = ">=3.10"
keywords = ["loyalty", "orders", "accrual", "luhn", "http", "flask", "queue"]
classifiers = [
    "Development Status :: 3 - Alpha",
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
]
dependencies = [
    "flask",
    "sqlalchemy",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
gophermart = "gophermart.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gophermart"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
