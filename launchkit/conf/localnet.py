from launchkit.conf.settings import LaunchkitSettings

SETTINGS = LaunchkitSettings(
    NETWORK_NAME='localnet',
    BLUEPRINTS={
        bytes.fromhex(
            '3b2f6f0c1e5d4a8a9c7e2d1b0f4e6a5c8d9b7a6f5e4d3c2b1a0f9e8d7c6b5a41'
        ): 'Token',
        bytes.fromhex(
            '7d1c5e9a2b4f6e8d0c3a5b7f9e1d2c4b6a8f0e3d5c7b9a1f2e4d6c8b0a3f5e72'
        ): 'VestingWallet',
        bytes.fromhex(
            '9a8b7c6d5e4f3a2b1c0d9e8f7a6b5c4d3e2f1a0b9c8d7e6f5a4b3c2d1e0f9a83'
        ): 'FixedVestingWallet',
        bytes.fromhex(
            'c4e2a0f8d6b4c2e0a8f6d4b2c0e8a6f4d2b0c8e6a4f2d0b8c6e4a2f0d8b6c4e5'
        ): 'Crowdsale',
        bytes.fromhex(
            'e1f3a5c7e9b1d3f5a7c9e1b3d5f7a9c1e3b5d7f9a1c3e5b7d9f1a3c5e7b9d1f6'
        ): 'LiquidityPool',
        bytes.fromhex(
            '0b2d4f6a8c0e2b4d6f8a0c2e4b6d8f0a2c4e6b8d0f2a4c6e8b0d2f4a6c8e0b28'
        ): 'LiquidityPair',
        bytes.fromhex(
            '5f7e9d1c3b5a7f9e1d3c5b7a9f1e3d5c7b9a1f3e5d7c9b1a3f5e7d9c1b3a5f97'
        ): 'ProjectFactory',
    },
)
