#!/usr/bin/env python3
"""
Setup script for Zephyr Agent.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="zephyr-agent",
    version="0.1.0",
    description="Build snapshot and deployment pipeline for Zephyr Cloud",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Zephyr Agent Contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"zephyr_agent.federation": ["templates/*.j2"]},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.24.0",
        "click>=8.1.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0.0",
        "jinja2>=3.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ze-agent=zephyr_agent.cli.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Build Tools",
    ],
    keywords="module federation deploy edge snapshot",
)
