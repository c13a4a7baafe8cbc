#!/usr/bin/env python3
"""
Setup script for the groomnet package.

Grooming network analysis: descriptive statistics, exponential random graph
models and stochastic block models for directed primate grooming networks.
"""

from setuptools import setup, find_packages


def read_readme():
    """Read README.md for long description."""
    try:
        with open("README.md", "r", encoding="utf-8") as fh:
            return fh.read()
    except FileNotFoundError:
        return "Statistical analysis of directed primate grooming networks"


def get_version():
    """Extract version from src/groomnet/__init__.py."""
    with open("src/groomnet/__init__.py", "r", encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=", 1)[1].strip().strip("\"'")
    return "0.1.0"


setup(
    name="groomnet",
    version=get_version(),
    description="Descriptive statistics, ERGMs and stochastic block models for primate grooming networks",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Information Analysis",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
    ],
    python_requires=">=3.9",
    install_requires=[
        "networkit>=11.0",
        "polars>=1.0",
        "numpy>=1.24.0",
        "scipy>=1.10.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "groomnet=groomnet.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
