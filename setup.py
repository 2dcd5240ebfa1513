"""Setup configuration for airnode-deployer package."""

import re
from pathlib import Path

from setuptools import setup, find_packages

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = (
    readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""
)

# Version lives in deployer/_version.py
version_file = Path(__file__).parent / "deployer" / "_version.py"
version = re.search(
    r'^__version__ = "([^"]+)"', version_file.read_text(encoding="utf-8"), re.MULTILINE
).group(1)

setup(
    name="airnode-deployer",
    version=version,
    description="Deploy and remove serverless Airnode instances on AWS and GCP with terraform",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["deployer_cli"],
    python_requires=">=3.9",
    install_requires=[
        "boto3>=1.26.0",
        "google-cloud-storage>=2.10.0",
        "pydantic>=2.0",
        "python-dotenv>=1.0.0",
        "pyyaml>=6.0",
        "tenacity>=8.0.0",  # For retry logic
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "moto[s3]>=5.0.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=0.990",
        ],
    },
    entry_points={
        "console_scripts": [
            "airnode-deployer=deployer_cli:main",
        ],
    },
    classifiers=[
        "Intended Audience :: Developers",
        "Topic :: System :: Systems Administration",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="airnode oracle deployer terraform aws gcp serverless",
)
