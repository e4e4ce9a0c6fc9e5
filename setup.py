"""Setup configuration for email-jobs library."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="email-jobs",
    version="0.1.0",
    author="Email Jobs Contributors",
    description="A durable, PostgreSQL-backed email job queue with a polling processor",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["email_jobs", "email_jobs.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=[
        "asyncpg>=0.27.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "fastapi": [
            "fastapi>=0.110.0",
            "uvicorn[standard]>=0.20.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "fastapi>=0.110.0",
            "httpx>=0.24.0",
            "testcontainers[postgres]>=3.7.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
            "flake8>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "email-jobs-processor=email_jobs.processor_main:main",
            "email-jobs-admin=email_jobs.admin_main:main",
        ],
    },
)
