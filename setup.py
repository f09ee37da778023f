"""Setup configuration for cruxfetch"""

from setuptools import setup, find_packages

setup(
    name="cruxfetch",
    version="0.1.0",
    description=(
        "CLI and library for Chrome UX Report field metrics: p75 Core Web "
        "Vitals per page with origin fallback and a local response cache."
    ),
    author="cruxfetch Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "cruxfetch=cruxfetch.main:main",
        ],
    },
)
