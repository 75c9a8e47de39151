"""
Setup script for phrase-drill.

Phrase Drill is a terminal flashcard trainer for travel phrases. It runs
two kinds of session over a deck:

1. Study - user-paced: countdown, reveal, answer
2. Listen - hands-free auto-play with narration

Unfinished sessions are saved and resumed on the next run.
"""

from setuptools import find_namespace_packages, setup

setup(
    name="phrase-drill",
    version="1.0.0",
    description="Terminal flashcard sessions with countdowns, narration and auto-play",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_namespace_packages(include=["src", "src.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
        "speech": [
            "pyttsx3>=2.90",
        ],
    },
    entry_points={
        "console_scripts": [
            "drill=src.cli.drill_cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="flashcards language-learning tts cli education",
)
