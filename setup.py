#!/usr/bin/env python
# -*- coding: utf-8 -*-

from setuptools import setup

with open('README.rst') as f:
    readme = f.read()
version = (0, 3, 0)

setup(
    name='partitions',
    python_requires=">=3.10",
    version=".".join(map(str, version)),
    description='Render the instrument parts and the full score of lilypond scores',
    long_description=readme,
    long_description_content_type='text/x-rst',
    packages=[
        'partitions',
    ],
    install_requires=[
        "appdirs",
        "tabulate",
        "pyyaml",
        "psutil",
        "lxml",
        "rich",
        "chardet",
        "thefuzz",
        "configdict",
        "lilyponddist",
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'partitions=partitions.cli:main',
        ],
    },
    license="LGPLv2",
    zip_safe=False,
    classifiers=[
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Multimedia :: Sound/Audio'
    ],
)
