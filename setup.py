# setup.py
from setuptools import setup, find_packages

setup(
    name="ngram-ingest",
    version="0.1.0",
    description="Download Google Books n-gram shards into a compact SQLite database",
    package_dir={"": "src"},
    packages=find_packages("src", include=["ngram_ingest", "ngram_ingest.*"]),
    python_requires=">=3.9",
    install_requires=[
        "requests",
        "tqdm",
        "setproctitle",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
