from setuptools import setup

setup(
    name='fNIRS_ROI',
    version='0.1.0',
    packages=['fnirs_roi', 'fnirs_roi.core', 'fnirs_roi.viz', 'fnirs_roi.read', 'fnirs_roi.sfc',
              'fnirs_roi.processing', 'fnirs_roi.preprocessing'],
    url='https://github.com/tsujik2024',
    license='MIT',
    author='Keiko Tsuji',
    author_email='tsujik@ohsu.edu',
    description='Region-of-interest averaging of fNIRS time series, regression statistics and connectivity.',
    install_requires=[
        'numpy',
        'pandas',
        'matplotlib',
        'scipy',
        'seaborn',
        'openpyxl',     # for Excel ROI tables
        'tqdm',
        'setuptools'],
    extras_require={
        'test': ['pytest']
    })
