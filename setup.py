from setuptools import setup, find_packages

setup(
    name="livelingo",
    version="0.1.0",
    description="Real-time meeting transcription and contextual translation over a live speech session",
    author="",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pyaudio>=0.2.11",
        "numpy>=1.21.0",
        "scipy>=1.7.0",
        "google-genai>=1.0.0",
        "websockets>=13.0",
        "rich>=12.5.0",
        "pyyaml>=6.0.0",
        "pypubsub>=4.0.3",
        "aiohttp>=3.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "livelingo=livelingo.main:main",
        ],
    },
)
