"""Derive unset fields from other fields by convention."""

from __future__ import annotations

import structlog

from .fields import BuilderFields

logger = structlog.get_logger()


def apply_default_derived_values(fields: BuilderFields) -> None:
    """Default the receiver key alias to the receiver AS2 ID.

    Only assigns when the alias is ``None``.  The AS2 ID may itself still be
    ``None``; verification then reports the missing alias.
    """
    if fields.receiver_key_alias is None:
        fields.receiver_key_alias = fields.receiver_as2_id
        logger.debug("receiver_key_alias_defaulted", receiver_key_alias=fields.receiver_key_alias)
