from .batch_check import (
    BatchCheckUseCase,
    BatchReport,
    ProgressRow,
    ProgressTable,
    RowStatus,
    StopSignal,
    parse_links,
)

__all__ = [
    "BatchCheckUseCase",
    "BatchReport",
    "ProgressRow",
    "ProgressTable",
    "RowStatus",
    "StopSignal",
    "parse_links",
]
