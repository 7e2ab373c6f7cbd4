"""Setup script for TradeDesk."""

from setuptools import setup, find_packages

# Read long description from README
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read requirements
with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="tradedesk",
    version="0.1.0",
    author="TradeDesk Team",
    author_email="team@tradedesk.dev",
    description="Multi-provider market data gateway with caching, rate limiting and fallback",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/tradedesk/tradedesk",
    packages=find_packages(where=".", include=["tradedesk", "tradedesk.*"]),
    package_dir={"": "."},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Financial and Insurance Industry",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial :: Investment",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": ["pytest>=7.4.4", "pytest-asyncio>=0.23.0", "httpx>=0.25.0", "black>=23.12.1", "mypy>=1.8.0"],
        "test": ["pytest>=7.4.4", "pytest-asyncio>=0.23.0", "httpx>=0.25.0"],
    },
    entry_points={
        "console_scripts": [
            "tradedesk-api=tradedesk.api.__main__:main",
        ],
    },
)
