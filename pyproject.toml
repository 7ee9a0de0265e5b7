[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wcprace"
version = "0.1.0"
description = "Predictive data race detection over event traces using the Weak-Causally-Precedes (WCP) relation"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "data race",
    "race detection",
    "concurrency",
    "vector clock",
    "weak causally precedes",
    "dynamic analysis",
    "trace",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Quality Assurance",
    "Topic :: Software Development :: Debuggers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
wcprace = "wcprace.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["wcprace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
strict = true
