from setuptools import setup


setup(
    name="found-wizard",
    version="0.1.0",
    description="Step-by-step wizard that turns lost & found register CSV exports into schema-valid datasets",
    packages=["found_wizard"],
    package_data={
        "found_wizard": [
            "data/*.json",
        ]
    },
    include_package_data=True,
    install_requires=[
        "pandas>=2.0",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "found-wizard=found_wizard.cli:main",
        ]
    },
)
