#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:36
# @Author  : hejun
"""
项目安装文件
"""
from setuptools import setup, find_packages
import pathlib

here = pathlib.Path(__file__).parent.resolve()

# 读取README
long_description = (here / "README.md").read_text(encoding="utf-8")

setup(
    name="address-dedup",
    version="1.0.0",
    description="多源地址去重引擎（OSM / BANO / OpenAddresses）",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="hejun",
    author_email="example@example.com",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: GIS",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="address, deduplication, record linkage, openstreetmap, bano, openaddresses",
    packages=find_packages(where=".", exclude=["tests", "tests.*"]),
    python_requires=">=3.9, <4",
    install_requires=[
        "pandas>=1.5.0",
        "numpy>=1.23.0",
        "rapidfuzz>=3.0.0",
        "python-Levenshtein>=0.21.0",
        "jaro-winkler>=2.0.0",
        "joblib>=1.2.0",
        "numba>=0.57.0",
        "psutil>=5.9.0",
        "tqdm>=4.64.0",
    ],
    extras_require={
        "dev": ["pytest>=7.0", "black>=22.0", "flake8>=5.0"],
        "libpostal": ["postal>=1.1.10"],
        "osm": ["osmium>=3.6.0"],
    },
    entry_points={
        "console_scripts": [
            "address-dedup=address_dedup.main:main",
        ],
    },
    project_urls={
        "Bug Reports": "https://github.com/example/address-dedup/issues",
        "Source": "https://github.com/example/address-dedup",
    },
)
