#!/usr/bin/env python3
"""
Setup script for hyperref - static site build planner.
"""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
long_description = ''
readme_path = os.path.join(this_directory, 'README.md')
if os.path.exists(readme_path):
    with open(readme_path, encoding='utf-8') as f:
        long_description = f.read()

setup(
    name='hyperref',
    version='1.0.0',
    description='A static site build planner: reachable pages only, optimized images, inlined webfonts',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'hyperref_pkg': [
            'themes/*.yml',
        ],
    },
    include_package_data=True,
    install_requires=[
        'mistune>=3.0',
        'PyYAML>=6.0',
        'Jinja2>=3.0',
        'MarkupSafe>=2.0',
        'requests>=2.25',
        'Pillow>=9.1',
        'csscompressor>=0.9.5',
        'Pygments>=2.12',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Internet :: WWW/HTTP :: Site Management',
        'Topic :: Software Development :: Code Generators',
        'Topic :: Text Processing :: Markup :: HTML',
    ],
    python_requires='>=3.8',
    entry_points={
        'console_scripts': [
            'hyperref=hyperref_pkg.cli:main',
        ],
    },
    keywords='static site generator, markdown, incremental build, webp, webfonts',
)
