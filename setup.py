# setup.py

from setuptools import setup, find_packages

setup(
    name="numass",
    version="0.1.0",
    packages=find_packages(exclude=["tests*", "output*"]),
    install_requires=[
        "numpy",
        "matplotlib",
        "scipy",
        "lmfit",
        "pandas",
        "pyyaml",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-cov",
        ]
    }
)
