from setuptools import setup


setup(
    name='divan',
    version='0.1.0',
    description='Blocking CouchDB client built on Tornado',
    license='MIT',
    packages=['divan'],
    python_requires='>=3.8',
    install_requires=[
        'tornado>=6.0',
        ],
    extras_require={
        'test': ['pytest'],
        },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Database',
        ]
)
