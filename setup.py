"""
draftgraph setup.py — Package configuration.
"""

from setuptools import find_packages, setup

setup(
    name="draftgraph",
    version="1.0.0",
    description="draftgraph — Content-addressed draft/publish versioning for a headless CMS",
    packages=find_packages(include=["draftgraph", "draftgraph.*"]),
    python_requires=">=3.11",
    install_requires=[
        "sqlalchemy>=2.0",
        "pydantic>=2.5",
        "cryptography>=42.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
)
