import setuptools

setuptools.setup(
    name="ubnttool",
    version="1.0.0",
    author="The ubnttool authors",
    description=("UBNT firmware image inspection and extraction"),
    license="Apache Software License",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.7",
    install_requires=[
        'cryptography>=2.4.2',
        'intelhex>=2.2.1',
        'click',
        'PyYAML>=5.1',
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["ubnttool=ubnttool.main:ubnttool"]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Development Status :: 4 - Beta",
        "Topic :: Software Development :: Embedded Systems",
        "License :: OSI Approved :: Apache Software License",
    ],
)
