from holdem.game import GameEngine
from holdem.models import TableConfig

from .server import TableHost

__all__ = ["GameEngine", "TableConfig", "TableHost"]
