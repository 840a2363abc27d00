from .run import ConvertResult, convert

__all__ = ["ConvertResult", "convert"]
