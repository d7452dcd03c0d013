__all__ = ("StaticCacheError", "StoreError", "TransportError")


class StaticCacheError(Exception): ...


class StoreError(StaticCacheError): ...


class TransportError(StaticCacheError): ...
