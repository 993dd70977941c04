from setuptools import setup, find_packages

setup(
    name="danbooru_explorer",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "PySide6",
        "requests",
        "python-dotenv",
        "Pillow",
        "keyring",
        "lru-dict",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "danbooru_explorer=danbooru_explorer.main:main",
        ],
    },
)
