"""
Labworks Settings.

Supports two formats (dict takes priority):

    # Option 1: Dict
    LABWORKS = {
        "DOCUMENT_BACKEND": "myproject.annex.CeleryDocumentBackend",
        "DOCUMENT_LOCALE": "de",
    }

    # Option 2: Flat
    LABWORKS_DOCUMENT_BACKEND = "myproject.annex.CeleryDocumentBackend"
    LABWORKS_DOCUMENT_LOCALE = "de"

All settings have defaults; no configuration is required.
"""

import threading

from django.conf import settings


# ── Defaults ──

DEFAULTS = {
    "DOCUMENT_BACKEND": "labworks.adapters.noop.LoggingDocumentBackend",
    "ORDER_STORE": "labworks.adapters.orders.DjangoOrderStore",
    "DOCUMENT_LOCALE": "en",
    "DOCUMENT_MAX_ATTEMPTS": 5,
    "EXPIRY_WARNING_DAYS": 30,
    "LOW_STOCK_THRESHOLD": 20,
    "WORKSHEET_NUMBER_PREFIX": "DN",
    "TRANSITION_RETRIES": 5,
}


# ── Accessors ──

_sentinel = object()


def get_setting(name, default=_sentinel):
    """
    Get a labworks setting.

    Looks up in order:
    1. LABWORKS dict (e.g. LABWORKS = {"DOCUMENT_LOCALE": "..."})
    2. Flat setting (e.g. LABWORKS_DOCUMENT_LOCALE = "...")
    3. DEFAULTS
    """
    labworks_dict = getattr(settings, "LABWORKS", {})
    if name in labworks_dict:
        return labworks_dict[name]

    flat_value = getattr(settings, f"LABWORKS_{name}", _sentinel)
    if flat_value is not _sentinel:
        return flat_value

    if default is not _sentinel:
        return default

    return DEFAULTS.get(name)


_backend_lock = threading.Lock()
_backend_instances = {}


def _get_backend(name):
    path = get_setting(name)
    if not path:
        return None

    instance = _backend_instances.get(name)
    if instance is None:
        with _backend_lock:
            instance = _backend_instances.get(name)
            if instance is None:  # double-checked
                from django.utils.module_loading import import_string

                instance = import_string(path)()
                _backend_instances[name] = instance

    return instance


def get_document_backend():
    """
    Return the configured compliance document backend.

    The backend receives Annex XIII generation requests after a worksheet
    passes quality control.
    """
    return _get_backend("DOCUMENT_BACKEND")


def get_order_store():
    """Return the configured order store (parent order status reflection)."""
    return _get_backend("ORDER_STORE")


def reset_backends() -> None:
    """Reset cached backends (for tests)."""
    with _backend_lock:
        _backend_instances.clear()
