from setuptools import setup, find_packages

setup(
    name="voting-dapp-client",
    version="1.0.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "web3>=7.0.0",
        "eth-account>=0.13.0",
        "eth-utils>=4.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "click>=8.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "votingctl = voting_dapp_client.cli:cli",
        ],
    },
    python_requires=">=3.9",
    author="Voting dApp Team",
    description="Wallet, allowance and transaction orchestration for the on-chain voting contract",
)
