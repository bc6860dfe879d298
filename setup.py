"""
course-video-uploader: setuptools build script.

Usage:
    # Development (editable install, links to source):
    pip install -e .

    # With test tooling:
    pip install -e ".[test]"

The `course-video-upload` command is installed alongside the package.
"""

from setuptools import setup, find_namespace_packages

APP_NAME = "course-video-uploader"

setup(
    name=APP_NAME,
    version="1.0.0",
    description="Chunked, resumable course video uploads for the LMS backend",
    python_requires=">=3.10",
    packages=find_namespace_packages(include=["uploader", "uploader.*"]),
    py_modules=["main"],
    install_requires=[
        "requests>=2.28",
        "typer>=0.9",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "course-video-upload=main:main",
        ],
    },
)
