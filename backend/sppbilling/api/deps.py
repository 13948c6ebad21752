# sppbilling/api/deps.py
#
# Shared request dependencies. The SchoolStore lives on
# app.state (one per app instance, see main.create_app) and
# reaches routes only through get_store.

from fastapi import Request

from sppbilling.core.store import SchoolStore


def get_store(request: Request) -> SchoolStore:
    """
    Usage:
        def list_classes(store: SchoolStore = Depends(get_store)):
    """
    return request.app.state.store
