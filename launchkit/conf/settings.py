from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

DAY_IN_SECONDS = 24 * 3600


class LaunchkitSettings(BaseModel):
    """Network-wide constants shared by the runner and every blueprint."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    # Name of the network, only used for logging and display.
    NETWORK_NAME: str

    # Size in bytes of every account and contract address.
    ADDRESS_LENGTH: int = 20

    # Denominator used by every fee expressed in basis points.
    BASIS_POINTS: int = 10_000

    # Upper bound accepted for the project factory token fee.
    MAX_TOKEN_FEE: int = 10_000

    # Time after `closing_time` during which a successful crowdsale may still be finalized.
    CROWDSALE_FINALIZATION_WINDOW: int = 30 * DAY_IN_SECONDS

    # Maximum nesting of contract calls inside one invocation.
    MAX_CALL_DEPTH: int = 32

    # Clock value of a freshly created runner.
    GENESIS_TIMESTAMP: int = 1_700_000_000

    # Built-in blueprints, blueprint id -> blueprint class name.
    BLUEPRINTS: dict[bytes, str] = {}

    @field_validator('ADDRESS_LENGTH', 'BASIS_POINTS', 'MAX_CALL_DEPTH')
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError('must be positive')
        return value

    @field_validator('CROWDSALE_FINALIZATION_WINDOW', 'GENESIS_TIMESTAMP', 'MAX_TOKEN_FEE')
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError('must not be negative')
        return value

    @field_validator('BLUEPRINTS', mode='before')
    @classmethod
    def _parse_blueprints(cls, value: Any) -> Any:
        # YAML files carry blueprint ids as hex strings.
        if isinstance(value, dict):
            return {bytes.fromhex(k) if isinstance(k, str) else k: v for k, v in value.items()}
        return value

    @model_validator(mode='after')
    def _check_consistency(self) -> 'LaunchkitSettings':
        if self.MAX_TOKEN_FEE > self.BASIS_POINTS:
            raise ValueError('MAX_TOKEN_FEE cannot exceed BASIS_POINTS')
        for blueprint_id in self.BLUEPRINTS:
            if len(blueprint_id) != 32:
                raise ValueError(f'invalid blueprint id: {blueprint_id.hex()}')
        return self
