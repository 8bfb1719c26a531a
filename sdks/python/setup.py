"""Setup for PitchIntel Python SDK"""

from setuptools import setup, find_packages

setup(
    name="pitchintel-sdk",
    version="0.1.0",
    description="Python SDK for the PitchIntel backend",
    author="PitchIntel Team",
    packages=find_packages(),
    install_requires=[
        "httpx>=0.25.2",
    ],
    python_requires=">=3.11",
)
