from setuptools import setup, find_packages

setup(
    name="ppg_vitals",
    version="0.1.0",
    description="Vital-signs estimation from camera photoplethysmography (PPG)",
    packages=find_packages(exclude=["tests"]),
    py_modules=["main"],
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "scipy>=1.10",
        "PyWavelets>=1.4",
    ],
    extras_require={
        "dev": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": [
            "ppg-vitals=main:main",
        ]
    },
)
