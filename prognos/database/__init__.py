from .dbm import DBM
from .init import initialize
from .repository import PoolStore

__all__ = ["DBM", "PoolStore", "initialize"]
