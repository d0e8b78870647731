from .logger import LoggerManager
