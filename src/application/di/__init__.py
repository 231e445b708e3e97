from .container import Container, close_container, get_container, set_container

__all__ = ["Container", "close_container", "get_container", "set_container"]
