"""Scripting API."""

from .facade import ExchangeFacade

__all__ = ["ExchangeFacade"]
