from .logger_util import get_logger

__all__ = ["get_logger"]
