#!/usr/bin/env python3
"""
Setup configuration for waylrc
Time-synced lyrics for Waybar from any MPRIS media player
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "dbus-next>=0.2.3",
    "aiohttp>=3.9.1",
    "mutagen>=1.47.0",
    "rapidfuzz>=3.5.0",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "pyyaml>=6.0.1",
]

test_requirements = [
    "pytest>=7.4.3",
    "pytest-asyncio>=0.21.1",
]

setup(
    name="waylrc",
    version="0.1.0",
    author="waylrc contributors",
    description="Time-synced LRC lyrics for Waybar from any MPRIS media player",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["waylrc", "waylrc.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: No Input/Output (Daemon)",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio :: Players",
        "Topic :: Desktop Environment",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements + [
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "waylrc=waylrc.cli:cli",
        ],
    },
    keywords="waybar mpris lyrics lrc dbus",
)
