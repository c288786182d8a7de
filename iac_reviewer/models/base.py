# iac_reviewer/models/base.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class AppBaseModel(BaseModel):
    """
    Base for every model that crosses the wire.

    Wire names are camelCase aliases (``apiVersion``, ``safeProperties``,
    ``fullName``); code builds models with the snake_case field names and
    dumps with ``by_alias=True`` before anything is sent or scanned.
    """

    model_config = ConfigDict(populate_by_name=True)


__all__ = ["AppBaseModel"]
