from .loader import load_config
from .models import (
    HashingConfig,
    MerkdirConfig,
    OutputConfig,
    ScanConfig,
)

__all__ = [
    "HashingConfig",
    "MerkdirConfig",
    "OutputConfig",
    "ScanConfig",
    "load_config",
]
