from os import path

from setuptools import setup

this_dir = path.abspath(path.dirname(__file__))
with open(path.join(this_dir, "README.md")) as f:
    long_description = f.read()

setup(
    name="OrmFactory",
    description="OrmFactory - generic repositories and unit of work on top of SQLAlchemy",
    long_description=long_description,
    long_description_content_type="text/markdown",
    version="0.1",
    license="MIT",
    author="Joseph Kim, Benzamin Yoon",
    author_email="cloudeyes@gmail.com",
    packages=["ormfactory", "ormfactory.core", "ormfactory.test"],
    package_data={
        "ormfactory": ["py.typed"],
        "ormfactory.core": ["py.typed"],
        "ormfactory.test": ["py.typed"],
    },
    keywords=["ormfactory", "repository", "unit of work", "sqlalchemy"],
    install_requires=[
        "sqlalchemy>=2.0",
        "uvicorn",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
    ],
)
