# setup.py
from setuptools import find_packages, setup

setup(
    name="gigglemap",
    version="0.1.0",
    packages=find_packages(include=["gigglemap", "gigglemap.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette",
        "uvicorn[standard]",
        "python-multipart",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg",
        "psycopg[binary]>=3.1",
        "alembic",
        "geoalchemy2>=0.14",
        "pydantic>=2.5",
        "pydantic-settings>=2.0",
        "python-dotenv",
        "structlog>=23.1",
        "sentry-sdk",
        "slowapi",
        "limits",
        "httpx",
        "geographiclib>=2.0",
        "bcrypt>=4.0",
        "PyJWT>=2.8",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
)
