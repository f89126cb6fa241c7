from .base import RESOLVERS, Resolver, available_resolvers, create_resolver, register_resolver
from .attribute import (
    ExternalIdentifierResolver,
    PreferredLanguageResolver,
    SimpleAttributeResolver,
    UniqueAttributeResolver,
)
from .details import DetailMover, EmailMover, IMMover, PhoneMover

__all__ = [
    "RESOLVERS",
    "Resolver",
    "available_resolvers",
    "create_resolver",
    "register_resolver",
    "SimpleAttributeResolver",
    "UniqueAttributeResolver",
    "ExternalIdentifierResolver",
    "PreferredLanguageResolver",
    "DetailMover",
    "EmailMover",
    "PhoneMover",
    "IMMover",
]
