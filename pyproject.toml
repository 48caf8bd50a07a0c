[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "onnxgen"
version = "0.1.0"
description = "Generate plain C source for ONNX operator nodes: output shape resolution and kernel code emission"
requires-python = ">=3.10"
dependencies = []
keywords = ["onnx", "code-generation", "c", "neural-networks", "microcontrollers", "inference"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Code Generators",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["onnxgen"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
