[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "epollweb"
version = "0.1.0"
description = "A small event-driven HTTP server with form login and registration, plus a multi-client web benchmark tool"
requires-python = ">=3.10"
keywords = ["http", "server", "selectors", "keep-alive", "benchmark", "webbench"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: System :: Benchmark",
]
dependencies = [
    "pymysql",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
epollweb = "epollweb.main:main"
epollweb-bench = "epollweb.bench:main"

[tool.hatch.build.targets.wheel]
packages = ["epollweb"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
