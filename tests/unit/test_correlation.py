"""Unit tests for correlation key column resolution."""
import pytest

from pamgov.core.constants import ATTR_EXTERNAL_NATIVE_IDENTIFIER, ATTR_EXTERNAL_SOURCE
from pamgov.core.correlation import CorrelationKeyResolver
from pamgov.core.exceptions import ConfigurationError
from pamgov.core.models import Application, AttributeDefinition, Schema


@pytest.fixture
def pam_app():
    return Application(
        "Finance-PAM",
        id="app-1",
        schemas={
            "account": Schema("account", [AttributeDefinition("nativeIdentifier", correlation_key=3)]),
            "group": Schema("group", [
                AttributeDefinition("nativeIdentifier", correlation_key=1),
                AttributeDefinition("source", correlation_key=2),
                AttributeDefinition("description"),
            ]),
        },
    )


def test_resolve_key_group_schema(pam_app):
    resolver = CorrelationKeyResolver()
    assert resolver.resolve_key(pam_app, ATTR_EXTERNAL_NATIVE_IDENTIFIER, False) == "key1"
    assert resolver.resolve_key(pam_app, ATTR_EXTERNAL_SOURCE, False) == "key2"


def test_resolve_key_account_schema(pam_app):
    resolver = CorrelationKeyResolver()
    assert resolver.resolve_key(pam_app, ATTR_EXTERNAL_NATIVE_IDENTIFIER, True) == "key3"


def test_resolve_key_attribute_absent_returns_none(pam_app):
    resolver = CorrelationKeyResolver()
    assert resolver.resolve_key(pam_app, ATTR_EXTERNAL_SOURCE, True) is None


def test_resolve_key_not_a_correlation_key_is_fatal(pam_app):
    resolver = CorrelationKeyResolver()
    with pytest.raises(ConfigurationError):
        resolver.resolve_key(pam_app, "description", False)


def test_resolve_key_missing_schema_is_fatal():
    app = Application("No-Schemas", id="app-2")
    with pytest.raises(ConfigurationError):
        CorrelationKeyResolver().resolve_key(app, ATTR_EXTERNAL_NATIVE_IDENTIFIER, False)


def test_lookup_table_is_cached_until_invalidated(pam_app):
    resolver = CorrelationKeyResolver()
    assert resolver.resolve_key(pam_app, ATTR_EXTERNAL_NATIVE_IDENTIFIER, False) == "key1"

    pam_app.schemas["group"] = Schema("group", [AttributeDefinition("nativeIdentifier", correlation_key=4)])
    assert resolver.resolve_key(pam_app, ATTR_EXTERNAL_NATIVE_IDENTIFIER, False) == "key1"

    resolver.invalidate(pam_app)
    assert resolver.resolve_key(pam_app, ATTR_EXTERNAL_NATIVE_IDENTIFIER, False) == "key4"
