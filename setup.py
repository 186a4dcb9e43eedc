#!/usr/bin/env python3

from setuptools import setup

with open('README.txt', encoding='utf-8') as file:
    long_description = file.read()

setup(name='pyipfix',
      version='0.1.0',
      description='IPFIX and NetFlow V9 message codec for Python 3',
      long_description = long_description,
      author='Brian Trammell',
      author_email='brian@trammell.ch',
      packages=['pyipfix'],
      package_data={'pyipfix': ['iana.iespec']},
      python_requires='>=3.6',
      install_requires=['svgwrite'],
      extras_require={'test': ['pytest']},
      classifiers=["Development Status :: 3 - Alpha",
                   "Intended Audience :: Developers",
                   "License :: OSI Approved :: "
                   "GNU Lesser General Public License v3 or later (LGPLv3+)",
                   "Operating System :: OS Independent",
                   "Programming Language :: Python :: 3",
                   "Topic :: System :: Networking"]
      )
