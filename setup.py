#!/usr/bin/env python3
"""
Setup configuration for tuneseek
YouTube Music search, album reconstruction and playback with synced lyrics
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "ytmusicapi>=1.3.2",
    "yt-dlp>=2023.12.30",
    "click>=8.1.7",
    "pyyaml>=6.0.1",
    "requests>=2.31.0",
    "tqdm>=4.66.1",
    "colorama>=0.4.6",
    "python-dotenv>=1.0.0",
    "pygame>=2.5.0",
]

setup(
    name="tuneseek",
    version="1.0.0",
    author="tuneseek contributors",
    description="YouTube Music search, album reconstruction and playback with synced lyrics",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio :: Players",
    ],
    python_requires=">=3.8",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tuneseek=tuneseek.main:cli",
        ],
    },
    keywords="youtube music album lyrics lrc player cli",
)
