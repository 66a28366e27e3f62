from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fp:
    long_description = fp.read()

setup(
    name="craftlaunch",
    version="1.0.0",
    description="craftlaunch is a module that installs a game version (client, assets, libraries and natives) "
                "into a local layout and launches it, usable both as an API and as a CLI.",
    author="craftlaunch contributors",
    packages=["craftlaunch", "craftlaunch.cli"],
    url="https://github.com/craftlaunch/craftlaunch",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="GPL-3.0",
    python_requires=">=3.8",
    extras_require={
        "certifi": ["certifi"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "craftlaunch = craftlaunch.cli:main",
        ],
    },
)
