import os
import re

from setuptools import setup, find_packages

# Read version from the package without importing it (avoids needing deps at build time)
with open(os.path.join(os.path.dirname(os.path.abspath(__file__)), "opsynth", "version.py")) as _f:
    __version__ = re.search(r'__version__\s*=\s*"([^"]+)"', _f.read()).group(1)

setup(
    name="opsynth",
    version=__version__,
    packages=find_packages(include=["opsynth", "opsynth.*"]),
    install_requires=[
        "lark>=1.1.5",
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "typer>=0.9.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "opsynth=opsynth.main:app",
        ],
    },
    python_requires=">=3.9",
)
