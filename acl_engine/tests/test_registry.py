"""
Unit tests for the ACL registry.
"""

import hashlib
import json
import logging

import pytest
import structlog
from unittest.mock import MagicMock

from acl_engine import ACL, Entity, InMemoryRuleLoader, JSONFileRuleLoader, Policy, READ, Role, Rule, WRITE
from shared.config import ACLSettings
from shared.errors import (
    DuplicateNode,
    DuplicateRegistration,
    InvalidIdentifier,
    InvalidPolicyValue,
    LoaderNotConfigured,
    UnknownElement,
    ValidationFailed,
)
from shared.metrics import ACLMetrics


class Document:
    """Stand-in for a persisted record type."""


class Folder:
    """Stand-in for a persisted record type."""


class TestPolicyConfiguration:
    """Test cases for default and preferred policies."""

    @pytest.fixture
    def acl(self):
        """Create an empty ACL."""
        return ACL()

    def test_defaults(self, acl):
        """Test the initial policies."""
        assert acl.default_policy is Policy.DENY
        assert acl.preferred_policy is Policy.ALLOW

    def test_default_and_preferred_policy(self, acl):
        """Test that both settings are independent."""
        acl.default_policy = Policy.ALLOW
        acl.preferred_policy = Policy.ALLOW
        assert acl.default_policy is Policy.ALLOW

        acl.default_policy = Policy.DENY
        assert acl.default_policy is Policy.DENY
        assert acl.preferred_policy is Policy.ALLOW

        acl.preferred_policy = Policy.DENY
        acl.default_policy = Policy.ALLOW
        assert acl.preferred_policy is Policy.DENY

    @pytest.mark.parametrize("value,expected", [
        ("DENY", Policy.DENY),
        ("allow", Policy.ALLOW),
        (" Deny ", Policy.DENY),
        (1, Policy.ALLOW),
    ])
    def test_policy_from_string(self, acl, value, expected):
        """Test that names and numbers are accepted."""
        acl.default_policy = value
        acl.preferred_policy = value

        assert acl.default_policy is expected
        assert acl.preferred_policy is expected

    @pytest.mark.parametrize("value", ["FOO", Policy.INHERIT, Policy.NOINHERIT, Policy.UNDEFINED, "UNDEFINED", None])
    def test_invalid_policy(self, acl, value):
        """Test that only ALLOW and DENY are accepted."""
        with pytest.raises(InvalidPolicyValue, match="Default policy should be either ALLOW or DENY"):
            acl.default_policy = value

        with pytest.raises(InvalidPolicyValue, match="Preferred policy should be either ALLOW or DENY"):
            acl.preferred_policy = value

        assert acl.default_policy is Policy.DENY
        assert acl.preferred_policy is Policy.ALLOW

    def test_constructor_validates_policies(self):
        """Test that invalid constructor arguments are rejected."""
        with pytest.raises(InvalidPolicyValue):
            ACL(default_policy="INHERIT")

    def test_validate_action(self, acl):
        """Test validator results."""
        acl.validate_action("anything")

        validator = MagicMock()
        validator.is_valid.return_value = False
        acl.action_validator = validator

        with pytest.raises(ValidationFailed) as exc_info:
            acl.validate_action("foobar")
        assert exc_info.value.reason == "rejected"
        assert exc_info.value.details == {"action": "foobar"}

        validator.is_valid.return_value = "unknown verb"
        with pytest.raises(ValidationFailed, match="unknown verb"):
            acl.validate_action("foobar")


class TestInstances:
    """Test cases for node registration through the ACL."""

    @pytest.fixture
    def acl(self):
        """Create an empty ACL."""
        return ACL()

    def test_create_and_get(self, acl):
        """Test the convenience constructors."""
        group = acl.create_role("group")
        user = acl.create_role("user", group)
        folder = acl.create_entity("folder")

        assert acl.get_role("user") is user
        assert user.get_parents() == [group]
        assert acl.get_entity("folder") is folder
        assert folder.get_parents() == [acl.get_root(Entity)]

    def test_set_instance_rejects_duplicates(self, acl):
        """Test that a second live node with the same id is refused."""
        role = acl.create_role("user")
        other_acl = ACL()
        impostor = Role(other_acl, "user")

        assert acl.set_instance(role) is role
        with pytest.raises(DuplicateNode):
            acl.set_instance(impostor)

    def test_get_unknown_entity(self, acl):
        """Test lookups of unknown ids."""
        with pytest.raises(UnknownElement, match="Entity-ID nope is unknown"):
            acl.get_entity("nope")

    def test_clear_all(self, acl):
        """Test clearing every kind."""
        acl.create_role("user")
        acl.create_entity("doc")

        acl.clear_cache()

        assert not acl.has_instance(Role, "user")
        assert not acl.has_instance(Entity, "doc")
        assert acl.get_root(Entity).is_root

    def test_resolve_node_uses_loader_once(self, acl):
        """Test that the node loader is not consulted for known nodes."""
        loader = MagicMock()
        loader.load.side_effect = lambda node_id, kind: kind(acl, node_id)

        first = acl.resolve_node(Entity, "doc", loader)
        second = acl.resolve_node(Entity, "doc", loader)

        assert first is second
        loader.load.assert_called_once_with("doc", Entity)

    def test_resolve_root_skips_loader(self, acl):
        """Test that roots never go through the loader."""
        loader = MagicMock()

        root = acl.resolve_node(Role, "EVERYONE", loader)

        assert root.is_root
        loader.load.assert_not_called()

    def test_isolated_registries(self):
        """Test that two ACLs do not share nodes."""
        one = ACL()
        two = ACL()
        one.create_role("user")

        assert not two.has_instance(Role, "user")
        two.create_role("user")


class TestExternalIdentifiers:
    """Test cases for kind registration and external ids."""

    @pytest.fixture
    def acl(self):
        """Create an ACL with a record loader."""
        acl = ACL(record_loader=MagicMock())
        acl.register_class("App_Document", Document)
        return acl

    def test_register_class(self, acl):
        """Test the bijective mapping."""
        assert acl.get_class("App_Document") is Document
        assert acl.get_class_name(Document) == "App_Document"

    def test_register_same_name_twice(self, acl):
        """Test that names are registered only once."""
        with pytest.raises(DuplicateRegistration, match="same name twice"):
            acl.register_class("App_Document", Folder)

    def test_register_same_kind_twice(self, acl):
        """Test that a kind maps to a single name."""
        with pytest.raises(DuplicateRegistration, match="same kind twice"):
            acl.register_class("App_Other", Document)

    @pytest.mark.parametrize("name", ["", "a#b", None])
    def test_register_invalid_name(self, acl, name):
        """Test that names must be usable in external ids."""
        with pytest.raises(InvalidIdentifier):
            acl.register_class(name, Folder)

    def test_generate_external_id(self, acl):
        """Test ids for integer, string and multi-valued keys."""
        assert acl.generate_external_id(Document, 123) == "App_Document#" + hashlib.sha1(b"123").hexdigest()[:10]
        assert acl.generate_external_id(Document, "foobar") == "App_Document#" + hashlib.sha1(b"foobar").hexdigest()[:10]
        assert acl.generate_external_id(Document, ["123", "456"]) == "App_Document#" + hashlib.sha1(b"123-456").hexdigest()[:10]

        with pytest.raises(InvalidIdentifier, match="Cannot generate an ID for an empty object"):
            acl.generate_external_id(Document, None)

    def test_generate_for_unregistered_kind(self, acl):
        """Test that unregistered kinds have no name."""
        with pytest.raises(UnknownElement):
            acl.generate_external_id(Folder, 1)

    def test_load_by_external_id(self, acl):
        """Test delegation to the record loader."""
        record = object()
        acl.record_loader.load.return_value = record

        assert acl.load_by_external_id("App_Document#bar") is record
        acl.record_loader.load.assert_called_once_with(Document, ["bar"])

        acl.load_by_external_id("App_Document#1-2")
        acl.record_loader.load.assert_called_with(Document, ["1", "2"])

    def test_load_by_external_id_errors(self, acl):
        """Test malformed ids, unknown kinds and a missing record loader."""
        with pytest.raises(InvalidIdentifier, match="Invalid external ID"):
            acl.load_by_external_id("App_Document")

        with pytest.raises(UnknownElement, match="Invalid kind name: Foo"):
            acl.load_by_external_id("Foo#bar")

        acl.record_loader = None
        with pytest.raises(LoaderNotConfigured):
            acl.load_by_external_id("App_Document#bar")


class TestQueriesAndSettings:
    """Test cases for registry-level queries, settings and metrics."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        """Undo the logging setup done by from_settings."""
        root = logging.getLogger()
        level = root.level
        yield
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()
        root.setLevel(level)

    def test_is_allowed_by_ids(self):
        """Test queries naming role and entity by id."""
        acl = ACL(rule_loader=InMemoryRuleLoader())
        acl.create_role("user")
        acl.create_entity("doc")
        acl.rule_loader.add_rule(Rule(acl, "doc", "user", READ, Policy.ALLOW))

        assert acl.is_allowed("user", "doc", READ) is True
        assert acl.is_allowed("user", "doc", WRITE) is False
        assert acl.get_policy("user", "doc", WRITE) is Policy.UNDEFINED

    def test_unknown_entity_in_query(self):
        """Test that unknown entities raise instead of defaulting."""
        acl = ACL(rule_loader=InMemoryRuleLoader())
        acl.create_role("user")

        with pytest.raises(UnknownElement):
            acl.is_allowed("user", "nope", READ)

    def test_from_settings(self, tmp_path):
        """Test building an ACL from settings with a rules file."""
        rules_file = tmp_path / "rules.json"
        rules_file.write_text(json.dumps({"rules": [
            {"entity_id": "doc", "role_id": "user", "action": "READ", "policy": "ALLOW"},
        ]}))
        settings = ACLSettings(default_policy="allow", preferred_policy="deny", rules_file=str(rules_file))

        acl = ACL.from_settings(settings)

        assert acl.default_policy is Policy.ALLOW
        assert acl.preferred_policy is Policy.DENY
        assert isinstance(acl.rule_loader, JSONFileRuleLoader)
        assert acl.metrics is None

        acl.create_role("user")
        acl.create_entity("doc")
        assert acl.get_policy("user", "doc", READ) is Policy.ALLOW

    def test_from_settings_applies_log_level(self, capsys):
        """Test that the configured log level silences lower-level events."""
        settings = ACLSettings(log_level="error")

        acl = ACL.from_settings(settings, rule_loader=InMemoryRuleLoader())
        acl.create_role("user")
        acl.create_entity("doc")
        assert acl.get_policy("user", "doc", READ) is Policy.UNDEFINED

        assert capsys.readouterr().out == ""
        assert not logging.getLogger("acl.registry").isEnabledFor(logging.INFO)
        assert logging.getLogger("acl.entity").isEnabledFor(logging.ERROR)

    def test_from_settings_prefers_explicit_loader(self):
        """Test that an explicit rule loader wins over the rules file."""
        loader = InMemoryRuleLoader()
        settings = ACLSettings(rules_file="/does/not/matter.json", enable_metrics=True)

        acl = ACL.from_settings(settings, rule_loader=loader)

        assert acl.rule_loader is loader
        assert isinstance(acl.metrics, ACLMetrics)

    def test_from_settings_invalid_policy(self):
        """Test that configured policies are validated."""
        with pytest.raises(InvalidPolicyValue):
            ACL.from_settings(ACLSettings(preferred_policy="INHERIT"))

    def test_metrics_recorded(self):
        """Test that decisions and rule loads are counted."""
        metrics = ACLMetrics()
        acl = ACL(rule_loader=InMemoryRuleLoader(), metrics=metrics)
        user = acl.create_role("user")
        doc = acl.create_entity("doc")
        acl.rule_loader.add_rule(Rule(acl, doc, user, READ, Policy.ALLOW))

        assert doc.is_allowed(user, READ) is True
        assert doc.is_allowed(user, WRITE) is False

        assert metrics.get_sample("acl_policy_decisions_total", {"policy": "ALLOW"}) == 1.0
        assert metrics.get_sample("acl_policy_decisions_total", {"policy": "DENY"}) == 1.0
        # doc and EVERYTHING, each loaded once
        assert metrics.get_sample("acl_rule_loads_total") == 2.0
        assert metrics.get_sample("acl_policy_resolution_seconds_count") == 2.0
