#!/usr/bin/env python3
"""
Setup script for the Hand Gesture Formation System
"""

from setuptools import setup, find_packages

setup(
    name="handsync",
    version="0.1.0",
    description="Hand gesture stabilization and synchronized formation progress",
    packages=find_packages(include=["handsync", "handsync.*"]),
    python_requires=">=3.9",
    install_requires=[
        "mediapipe>=0.10.8",
        "opencv-python>=4.8",
        "numpy>=1.24",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "handsync=handsync.main:run",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
