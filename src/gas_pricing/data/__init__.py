"""Data subpackage - repository contract and snapshot loaders."""
from .repository import Repository, DataFrameRepository

__all__ = ['Repository', 'DataFrameRepository']
