from setuptools import setup, find_packages

setup(
    name="pangenomic-fr",
    version="1.0.0",
    description="Frequented-region finder for case/control pangenomic genotype graphs",
    author="Nomlindelo Mfuphi",
    author_email="nmfuphi@csir.co.za",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pandas>=2.2.3",
        "numpy>=2.0",
        "scipy>=1.13.1",
        "statsmodels>=0.14.4",
        "networkx>=3.2",
        "pyyaml>=6.0.2"
    ],
    extras_require={
        "test": ["pytest>=8.0"]
    },
    entry_points={
        "console_scripts": [
            "pangenomic-fr=pangenomic_fr.cli:main"
        ]
    },
    include_package_data=True
)
