import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name='sklearn_antminer',
    version='0.0',
    packages=setuptools.find_packages(),
    license='BSD',
    description='Ant Colony Optimization rule discovery (Ant-Miner, '
                'cAnt-MinerPB, Ant-Tree-Miner) for scikit-learn.',
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires='>=3.9',
    install_requires=[
        'scikit_learn >= 1.6',
        'numpy',
        'scipy',
        'joblib',
    ],
    extras_require={
        'tests': ['pytest >= 3.5'],
    },
)
