#!/usr/bin/env python3
"""
memcache-conn Setup Script
==========================
Allows installation of the memcache-conn package.

Usage:
    pip install -e .           # Development install
    pip install -e .[test]     # Development install with test tools
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="memcache-conn",
    version="1.0.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "memcache-conn=memcache_conn.cli:main",
        ],
    },
)
