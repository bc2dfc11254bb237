from setuptools import setup


classifiers = [
    'Development Status :: 3 - Alpha',
    'License :: OSI Approved :: MIT License',
    'Operating System :: OS Independent',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Topic :: Database',
]


setup(
    name="pgheader",
    version="0.1.0",
    classifiers=classifiers,
    keywords=['PostgreSQL', 'page header', 'forensics'],
    description='Print page header fields of database relation files',
    long_description=open('README.rst').read(),
    license="MIT",
    packages=['pgheader'],
    py_modules=['printheader'],
    python_requires='>=3.8',
    entry_points={
        'console_scripts': ['printheader = printheader:main'],
    },
)
