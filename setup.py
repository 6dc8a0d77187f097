#!/usr/bin/env python3

from setuptools import find_namespace_packages, setup

if __name__ == '__main__':
    setup(
        package_dir={'': 'src'},
        packages=find_namespace_packages(where='src'),
    )
