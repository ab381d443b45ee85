from setuptools import setup, find_packages
version = {}
with open("clermontyping/__version__.py") as f:
    exec(f.read(), version)

setup(
    name="clermontyping",
    version=version["__version__"],
    packages=find_packages(exclude=["tests", "tests.*"]),
    description="E. coli phylogroup assignment from genome assemblies (Mash + in silico PCR)",
    install_requires=[
        "biopython>=1.85",
        "pandas>=1.5",
        "reportlab>=3.6",
        "colorama>=0.4",
        "tabulate>=0.9",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "clermontyping=clermontyping.cli:main"
        ]
    },
    include_package_data=True,
    package_data={
        "clermontyping": ["data/README.txt"],
    },
    python_requires=">=3.8",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
