from .base import Base, metadata
from .pool import Pool
from .prediction import Prediction
from .stake_transaction import StakeTransaction

__all__ = ["Base", "metadata", "Pool", "Prediction", "StakeTransaction"]
