from setuptools import setup, find_packages


setup(
    name="eris",
    version="0.1",
    packages=find_packages(include=["eris", "eris.*"]),
    description="Encrypted, content-addressed block encoding of immutable content (urn:erisx2).",
    python_requires=">=3.9",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "argon2-cffi>=23.1.0",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "eris=eris.cli:main",
        ]
    },
)
