#!/usr/bin/env python
from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name='ldap-utility',
    version='1.0.0',
    description='Paged LDAP searches mapped onto plain Python classes, plus bind authentication',
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=['django', 'ldap'],
    author="Caltech IMSS ADS",
    author_email="imss-ads-staff@caltech.edu",
    packages=find_packages(exclude=['bin', 'doc']),
    package_data={'ldaputility': ['tests/*.json']},
    include_package_data=True,
    install_requires=[
        'Django',
        'python-ldap',
    ],
    extras_require={
        'test': [
            'python-ldap-faker',
            'pytest',
        ],
        'docs': [
            'Sphinx',
            'sphinx-rtd-theme',
            'sphinxcontrib-django',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3"
    ],
)
