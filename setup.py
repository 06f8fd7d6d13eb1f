#!/usr/bin/env python

from setuptools import setup, find_packages


setup(
    name='fitscodec',
    version='0.1.0',
    description='Reads and writes FITS image files',
    long_description='fitscodec reads and writes the image HDUs of FITS '
                     '(Flexible Image Transport System) files: 80 column '
                     'header cards in 2880 byte blocks followed by '
                     'big-endian pixel data.',
    license='BSD',
    classifiers=[
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: BSD License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering :: Astronomy',
    ],
    package_dir={'': 'lib'},
    packages=find_packages('lib'),
    python_requires='>=3.6',
    install_requires=['numpy'],
    extras_require={'test': ['pytest']},
    zip_safe=False
)
