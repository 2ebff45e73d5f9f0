"""
Setup script for Roofscan package
Rooftop obstacle and shadow-zone detection from aerial DSM and irradiance rasters
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="roofscan",
    version="0.1.0",
    description="Detect rooftop obstacles, shadow zones and setbacks as geographic polygons for solar layout",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: GIS",
        "Topic :: Scientific/Engineering :: Image Processing",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        # Core scientific stack
        "numpy>=1.20",
        # Geospatial
        "shapely>=2.0,<3.0",
        "rasterio>=1.3,<2.0",
        "affine>=2.4,<3.0",
        # Imaging
        "pillow>=10.0",
        # Utilities
        "requests>=2.25,<3.0",
    ],
    extras_require={
        "dev": [
            "black>=22.0",
            "isort>=5.0",
            "pytest>=7.0",
            "pytest-cov>=3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "roofscan-detect=roofscan.obstacles.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
