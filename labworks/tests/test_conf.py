"""
Tests for labworks.conf settings lookup and backend caching.
"""

import pytest
from django.test import override_settings

from labworks.adapters.noop import LoggingDocumentBackend
from labworks.adapters.orders import DjangoOrderStore
from labworks.conf import get_document_backend, get_order_store, get_setting, reset_backends


@pytest.fixture(autouse=True)
def fresh_backends():
    reset_backends()
    yield
    reset_backends()


class TestGetSetting:
    def test_dict_setting(self):
        assert get_setting("DOCUMENT_LOCALE") == "de"

    @override_settings(LABWORKS={}, LABWORKS_DOCUMENT_LOCALE="pt")
    def test_flat_setting(self):
        assert get_setting("DOCUMENT_LOCALE") == "pt"

    @override_settings(LABWORKS={"DOCUMENT_LOCALE": "fr"}, LABWORKS_DOCUMENT_LOCALE="pt")
    def test_dict_wins_over_flat(self):
        assert get_setting("DOCUMENT_LOCALE") == "fr"

    @override_settings(LABWORKS={})
    def test_defaults(self):
        assert get_setting("DOCUMENT_LOCALE") == "en"
        assert get_setting("WORKSHEET_NUMBER_PREFIX") == "DN"
        assert get_setting("EXPIRY_WARNING_DAYS") == 30
        assert get_setting("TRANSITION_RETRIES") == 5

    def test_explicit_default(self):
        assert get_setting("NOT_A_SETTING", default=7) == 7
        assert get_setting("NOT_A_SETTING") is None


class TestBackends:
    def test_default_backends(self):
        assert isinstance(get_document_backend(), LoggingDocumentBackend)
        assert isinstance(get_order_store(), DjangoOrderStore)

    def test_backend_is_cached(self):
        assert get_document_backend() is get_document_backend()

    def test_reset(self):
        first = get_document_backend()
        reset_backends()

        assert get_document_backend() is not first

    @override_settings(LABWORKS={"DOCUMENT_BACKEND": None})
    def test_disabled_backend(self):
        assert get_document_backend() is None
