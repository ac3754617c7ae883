[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "arduhttp"
version = "2.2.0"
description = "A small blocking HTTP/1.1 and WebSocket client built on a byte-stream transport"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "websocket", "client", "url", "urlencode", "base64", "chunked"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["arduhttp"]

[tool.pytest.ini_options]
addopts = "-ra"
