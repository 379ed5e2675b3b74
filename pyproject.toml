[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gluekit"
version = "0.1.0"
description = "A small, provider-agnostic toolkit for building tool-using LLM agents."
requires-python = ">=3.11"
dependencies = []
keywords = [
    "agents",
    "llm",
    "tool-calling",
    "streaming",
    "prompts",
    "compaction",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Framework :: AsyncIO",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
    "pytest-asyncio>=0.21",
]

[tool.hatch.build.targets.wheel]
packages = ["gluekit"]

[tool.hatch.build.targets.sdist]
include = ["gluekit", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
