[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flexlog"
version = "0.1.0"
description = "Named loggers with level filtering, threaded dispatch, console and rotating file sinks, and XML formatting"
requires-python = ">=3.10"
dependencies = []
keywords = ["logging", "logger", "sink", "rotation", "xml", "structured-logging"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
flexlog-demo = "flexlog.api:main"

[tool.hatch.build.targets.wheel]
packages = ["flexlog"]

[tool.pytest.ini_options]
addopts = "-ra"
