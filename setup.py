from setuptools import setup, find_packages


setup(
    name="sandboxci",
    version="0.1",
    packages=find_packages(include=["sandboxci", "sandboxci.*"]),
    description="CI helpers for ephemeral blockchain sandboxes: verified directory archives, test-artifact upload and sandbox provisioning.",
    python_requires=">=3.9",
    install_requires=[
        "httpx>=0.27",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "sandboxci=sandboxci.cli:main",
            "extract-archive=sandboxci.extract:main",
        ]
    },
)
