"""
DocMS setup.py — Package configuration and CLI entry points.
"""

from setuptools import find_packages, setup

setup(
    name="docms",
    version="1.0.0",
    description="DocMS — Document Management System service",
    packages=find_packages(include=["docms", "docms.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "docms=docms.cli:main",
            "docms-server=docms.application:main",
        ],
    },
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic>=2.5",
        "redis>=5.0",
        "celery[redis]>=5.3",
        "networkx>=3.2",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
)
