from setuptools import setup, find_packages

setup(
    name="tolerant_patch",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        "textual",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "tolerant-patch=tolerant_patch.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Apply loosely formatted SEARCH/REPLACE edit blocks from LLM responses.",
)
