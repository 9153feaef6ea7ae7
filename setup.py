# setup.py
from setuptools import setup, find_packages

setup(
    name="tallman_chat_store",
    version="1.0.0",
    description="Schema-versioned local store and context retrieval for the Tallman chat assistant",
    author="Tallman Equipment",
    packages=find_packages(
        exclude=(
            "tests",
            "tests.*",
            "docs",
            "frontend",
            "node_modules",
            "dist",
            "build",
        )
    ),
    py_modules=["app"],
    install_requires=[
        "pydantic>=2.0",
        "fastapi>=0.100",
    ],
    extras_require={
        "server": ["uvicorn"],
        "test": ["pytest", "httpx"],
    },
    python_requires=">=3.10",
)
