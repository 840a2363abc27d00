from .registry import REGISTRY, FormatRegistry, default_registry, open_sink, open_source

__all__ = ["REGISTRY", "FormatRegistry", "default_registry", "open_sink", "open_source"]
