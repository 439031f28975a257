#!/usr/bin/env python
"""
Setup script for the spatial autocorrelation package.

This package provides neighbor graphs, spatial weights and global Moran's I
with analytic and permutation significance tests for areal data.
"""
from setuptools import setup, find_packages

setup(
    name="spatial_autocorrelation",
    version="0.1.0",
    description="Global spatial autocorrelation (Moran's I) for areal data",
    packages=find_packages(include=["spatial_autocorrelation", "spatial_autocorrelation.*"]),
    include_package_data=True,
    install_requires=[
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "statsmodels>=0.13.0",
        "scipy>=1.7.0",
        "geopandas>=0.12.0",
        "shapely>=2.0.0",
        "pyyaml>=5.4.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=6.0.0",
            "pytest-cov>=2.12.0",
        ],
        "spatial": [
            "libpysal>=4.5.0",
            "esda>=2.4.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: GIS",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
    python_requires=">=3.9",
)
