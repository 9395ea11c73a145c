from setuptools import setup, find_packages
from pathlib import Path

setup(
    name="pointmarker",
    version=Path("./pointmarker/VERSION").read_text().strip(),
    packages=find_packages(include=["pointmarker", "pointmarker.*"]),
    package_data={"pointmarker": ["VERSION"]},
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "opencv-python",
        "matplotlib",
        "easydict",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["pointmarker=pointmarker.cli:main"],
    },
)
