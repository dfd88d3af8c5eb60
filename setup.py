"""
Setup script for the diary_schedule service.
"""
from setuptools import setup, find_packages

setup(
    name="diary-schedule",
    version="1.0.0",
    description="Class schedule and lesson time-slot service for the school diary",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110.0",
        "pydantic>=2.0.0",
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        "python-dotenv>=1.0.0",
        "python-jose[cryptography]>=3.3.0",
        "requests>=2.31.0",
        "pika>=1.3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "httpx>=0.27.0",
        ],
    },
)
