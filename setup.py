"""Setup script for the familycal shared family calendar backend."""

from pathlib import Path

from setuptools import find_packages, setup

readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements, splitting test tooling into the dev extra
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
dev_requirements = []

if requirements_file.exists():
    for line in requirements_file.read_text().strip().split("\n"):
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "pytest" in line:
            dev_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="familycal",
    version="0.1.0",
    description="Shared family calendar backend with recurring events, conflict checks and reminders",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="familycal developers",
    packages=find_packages(exclude=["tests*", "docs*"]),
    include_package_data=True,
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements,
        "test": dev_requirements,
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
        "Framework :: AsyncIO",
    ],
    keywords="calendar family recurring-events conflicts reminders aiohttp async",
    entry_points={
        "console_scripts": [
            "familycal=familycal.__main__:main",
        ],
    },
    zip_safe=False,
)
