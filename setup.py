from setuptools import setup, find_packages

setup(
    name="bridgex",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "click",
        "psycopg2-binary",
        "python-dotenv",
        "pandas",
        "pydantic>=2",
        "toml",
        "rich",
        "requests",
        "google-cloud-storage",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "bridgex = bridgex.main:start_cli",
        ],
    },
    description="A command-line tool for exporting health-study records into Synapse tables.",
    license="MIT",
    keywords="synapse export tsv tables",
)
