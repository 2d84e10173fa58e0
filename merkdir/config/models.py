from pydantic import BaseModel, Field
from typing import Literal


class ScanConfig(BaseModel):
    ignore_patterns: list[str] = Field(default_factory=list)
    follow_symlinks: bool = False


class HashingConfig(BaseModel):
    workers: int | None = Field(default=None, gt=0)
    chunk_size: int = Field(default=1 << 20, gt=0)


class OutputConfig(BaseModel):
    progress: bool = True


class MerkdirConfig(BaseModel):
    scan: ScanConfig = Field(default_factory=ScanConfig)
    hashing: HashingConfig = Field(default_factory=HashingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
