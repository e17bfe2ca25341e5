from .getter import FetchRequest, FetchResponse, Getter

__all__ = ["FetchRequest", "FetchResponse", "Getter"]
