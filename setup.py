from setuptools import setup

setup(
    name='atmfjstc-zip-reader',
    version='0.1.0',

    author_email='atmfjstc@protonmail.com',

    package_dir={'': 'src'},
    packages=['atmfjstc.lib.zip_reader'],

    install_requires=[
        'atmfjstc-binary-utils>=1.2, <2',
        'atmfjstc-file-utils>=1.2, <3',
        'atmfjstc-iso-timestamp>=1.1.0, <2',
    ],

    zip_safe=True,

    description="Random-access reader for ZIP archives with CRC-verified streaming of stored entries",

    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: System :: Archiving",
        "Typing :: Typed",
    ],
    python_requires='>=3.7',
)
