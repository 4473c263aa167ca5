"""
Descriptor construction and hashing.
"""

import pytest

from metrics_registry.desc import Desc, Opts, build_fq_name
from metrics_registry.errors import DescriptorError
from metrics_registry.hashing import combine_ids, h_desc_id, h_dim


class TestDescNew:
    """Validation performed when a descriptor is built."""

    def test_const_labels_sorted_by_name(self):
        d = Desc.new("m", "help", const_labels={"b": "2", "a": "1"})
        assert [p.name for p in d.const_label_pairs] == ["a", "b"]
        assert d.const_labels() == {"a": "1", "b": "2"}

    def test_empty_help_rejected(self):
        with pytest.raises(DescriptorError):
            Desc.new("m", "")

    @pytest.mark.parametrize("name", ["", "1abc", "with-dash", "sp ace"])
    def test_invalid_metric_name(self, name):
        with pytest.raises(DescriptorError):
            Desc.new(name, "help")

    @pytest.mark.parametrize("label", ["__reserved", "1x", "a:b", ""])
    def test_invalid_label_name(self, label):
        with pytest.raises(DescriptorError):
            Desc.new("m", "help", [label])

    def test_label_repeated_between_const_and_variable(self):
        with pytest.raises(DescriptorError):
            Desc.new("m", "help", ["a"], {"a": "1"})

    def test_desc_is_immutable(self):
        d = Desc.new("m", "help")
        with pytest.raises(AttributeError):
            d.fq_name = "other"


class TestIdentity:
    """id and dim_hash derivation."""

    def test_id_depends_on_const_values_only(self):
        a = Desc.new("m", "help one", ["x"], {"c": "1"})
        b = Desc.new("m", "help two", ["y"], {"c": "1"})
        c = Desc.new("m", "help one", ["x"], {"c": "2"})
        assert a.id == b.id
        assert a.id != c.id

    def test_dim_hash_depends_on_shape_and_help(self):
        base = Desc.new("m", "help", ["x"], {"c": "1"})
        other_value = Desc.new("m", "help", ["x"], {"c": "2"})
        other_labels = Desc.new("m", "help", ["y"], {"c": "1"})
        other_help = Desc.new("m", "help!", ["x"], {"c": "1"})
        assert base.dim_hash == other_value.dim_hash
        assert base.dim_hash != other_labels.dim_hash
        assert base.dim_hash != other_help.dim_hash

    def test_dim_hash_ignores_label_declaration_order(self):
        assert Desc.new("m", "h", ["a", "b"]).dim_hash == Desc.new("m", "h", ["b", "a"]).dim_hash

    def test_hashes_are_u64(self):
        assert 0 <= h_desc_id("m", ["1"]) < 2 ** 64
        assert 0 <= h_dim("m", "h", ["a"]) < 2 ** 64

    def test_combine_ids_wraps(self):
        top = 2 ** 64 - 1
        assert combine_ids([top, 2]) == 1
        assert combine_ids([]) == 0


class TestOpts:
    """Name assembly."""

    def test_fq_name_skips_empty_parts(self):
        assert build_fq_name("ns", "", "requests") == "ns_requests"
        assert build_fq_name("ns", "http", "requests") == "ns_http_requests"
        assert build_fq_name("ns", "http", "") == ""

    def test_describe_uses_fq_name(self):
        d = Opts("requests", "help", namespace="app", const_labels={"env": "prod"}).describe(["code"])
        assert d.fq_name == "app_requests"
        assert d.variable_labels == ("code",)

    def test_label_pairs_checks_cardinality(self):
        d = Desc.new("m", "help", ["a", "b"])
        with pytest.raises(DescriptorError):
            d.label_pairs(["only-one"])
