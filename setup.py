"""
tiledgemm

Tiled shared-memory matrix multiplication on CUDA providing:
- Arena-backed host matrices with shape-checked operations
- A tiled GPU multiply dispatched in fixed-size grids
- A CPU reference multiply and a parity/benchmark harness
- Polynomial features, standardization and a regression driver
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="tiledgemm",
    version="0.1.0",
    author="tiledgemm contributors",
    description="Tiled GPU matrix multiplication with CPU parity checking",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering",
        "Topic :: Scientific/Engineering :: Mathematics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.22.0",
        "numba>=0.57.0",
    ],
    extras_require={
        "torch": [
            "torch>=2.0.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-benchmark>=4.0.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tiledgemm=tiledgemm.cli:main",
        ],
    },
    package_data={
        "tiledgemm": ["py.typed"],
    },
)
