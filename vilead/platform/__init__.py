from vilead.platform.security import ActorUser, BaseRepository, can, capabilities_for, require, resolve_scope

__all__ = [
    "ActorUser",
    "BaseRepository",
    "can",
    "capabilities_for",
    "require",
    "resolve_scope",
]
