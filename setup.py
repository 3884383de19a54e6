from setuptools import setup, find_packages

setup(
    name='wpmirror',
    version='0.1.0',
    packages=find_packages(),
    entry_points={
        'console_scripts': [
            'wpmirror=wpmirror.cli:main',
        ],
    },
    install_requires=[
        'aiohttp',
        'python-dotenv',
        'pydantic>=2',
        'pyyaml',
        'click',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    description='Mirror WordPress posts, pages and media into GitHub pull requests',
    python_requires='>=3.10',
)
