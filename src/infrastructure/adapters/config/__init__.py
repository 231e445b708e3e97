from .properties_config_source import DictConfigSource, PropertiesFileConfigSource

__all__ = ["DictConfigSource", "PropertiesFileConfigSource"]
