"""Tests for SearchSettings.

Covers:
1. SearchSettings: read, immutability, replace, diff, sections
2. Validation of known keys and variant names
3. DEFAULT_SETTINGS: structure and values
"""

import pytest

from taupath.settings import (
    COLUMN_SUM_MODES,
    DEFAULT_SETTINGS,
    SearchSettings,
    resolve_variant,
)


# ═══════════════════════════════════════════════════════════════════
# 1. SearchSettings core behaviour
# ═══════════════════════════════════════════════════════════════════

class TestSearchSettingsRead:
    """Reading keys, contains, len, iter."""

    def test_getitem(self):
        s = SearchSettings({"a.b": 1, "a.c": "x"})
        assert s["a.b"] == 1
        assert s["a.c"] == "x"

    def test_getitem_missing_raises(self):
        s = SearchSettings({"a.b": 1})
        with pytest.raises(KeyError):
            _ = s["z.z"]

    def test_get_with_default(self):
        s = SearchSettings({"a.b": 1})
        assert s.get("a.b") == 1
        assert s.get("z.z") is None
        assert s.get("z.z", -1) == -1

    def test_contains_len_iter(self):
        s = SearchSettings({"a.b": 1, "a.c": 2, "x.y": 3})
        assert "a.b" in s
        assert "z.z" not in s
        assert len(s) == 3
        assert sorted(s) == ["a.b", "a.c", "x.y"]

    def test_keys_values_items(self):
        data = {"a.b": 1, "a.c": 2}
        s = SearchSettings(data)
        assert set(s.keys()) == {"a.b", "a.c"}
        assert set(s.values()) == {1, 2}
        assert dict(s.items()) == data

    def test_to_dict_returns_copy(self):
        s = SearchSettings({"a.b": 1})
        d = s.to_dict()
        d["a.b"] = 999
        assert s["a.b"] == 1

    def test_repr_and_name(self):
        s = SearchSettings({"a.b": 1}, name="test")
        assert s.name == "test"
        assert "test" in repr(s)
        assert "1 keys" in repr(s)
        assert SearchSettings({}).name == "custom"


class TestSearchSettingsImmutability:

    def test_setitem_raises(self):
        with pytest.raises(TypeError):
            DEFAULT_SETTINGS["engine.verify_cache"] = True

    def test_replace_returns_new(self):
        s = DEFAULT_SETTINGS.replace({"engine.verify_cache": True})
        assert s["engine.verify_cache"] is True
        assert DEFAULT_SETTINGS["engine.verify_cache"] is False
        assert s.name == "default+"

    def test_replace_custom_name(self):
        s = DEFAULT_SETTINGS.replace({"matrix.parallel": True},
                                     name="threaded")
        assert s.name == "threaded"

    def test_replace_unknown_key(self):
        with pytest.raises(KeyError, match="engine.colum_sums"):
            DEFAULT_SETTINGS.replace({"engine.colum_sums": "recompute"})


class TestSearchSettingsCompare:

    def test_diff(self):
        cold = DEFAULT_SETTINGS.replace({"engine.column_sums": "recompute"})
        assert cold.diff(DEFAULT_SETTINGS) == {
            "engine.column_sums": ("recompute", "incremental")}
        assert DEFAULT_SETTINGS.diff(DEFAULT_SETTINGS) == {}

    def test_diff_missing_keys(self):
        a = SearchSettings({"a.b": 1})
        b = SearchSettings({"a.c": 2})
        assert a.diff(b) == {"a.b": (1, None), "a.c": (None, 2)}

    def test_eq(self):
        a = SearchSettings({"a.b": 1}, name="one")
        b = SearchSettings({"a.b": 1}, name="two")
        assert a == b
        assert a != SearchSettings({"a.b": 2})
        assert a != {"a.b": 1}

    def test_section(self):
        assert DEFAULT_SETTINGS.section("matrix") == {
            "matrix.parallel": False,
            "matrix.max_workers": 0,
            "matrix.parallel_min_size": 256,
        }
        assert DEFAULT_SETTINGS.section("nope") == {}

    def test_sections(self):
        assert DEFAULT_SETTINGS.sections == ("engine", "matrix")


# ═══════════════════════════════════════════════════════════════════
# 2. Validation and variants
# ═══════════════════════════════════════════════════════════════════

class TestValidation:

    @pytest.mark.parametrize("key,value", [
        ("matrix.parallel", 1),
        ("matrix.max_workers", -1),
        ("matrix.max_workers", True),
        ("matrix.parallel_min_size", 2.5),
        ("engine.column_sums", "lazy"),
        ("engine.verify_cache", "yes"),
        ("engine.record_trace", None),
    ])
    def test_bad_values_rejected(self, key, value):
        with pytest.raises(ValueError, match=key):
            DEFAULT_SETTINGS.replace({key: value})

    def test_unknown_keys_not_validated(self):
        assert SearchSettings({"extra.key": object()})


class TestVariants:

    @pytest.mark.parametrize("name,mode", [
        ("FastBCS", "recompute"),
        ("FastBCS2", "incremental"),
        ("fastbcs", "recompute"),
        (" FASTBCS2 ", "incremental"),
        ("recompute", "recompute"),
        ("incremental", "incremental"),
    ])
    def test_resolve(self, name, mode):
        assert resolve_variant(name) == mode

    def test_unknown_variant(self):
        with pytest.raises(ValueError, match="FastBCS3"):
            resolve_variant("FastBCS3")

    def test_with_variant_unchanged_returns_self(self):
        assert DEFAULT_SETTINGS.with_variant("FastBCS2") is DEFAULT_SETTINGS

    def test_with_variant_switches_mode(self):
        s = DEFAULT_SETTINGS.with_variant("FastBCS")
        assert s["engine.column_sums"] == "recompute"
        assert s.name == "default:recompute"


# ═══════════════════════════════════════════════════════════════════
# 3. DEFAULT_SETTINGS
# ═══════════════════════════════════════════════════════════════════

class TestDefaultSettings:

    def test_name(self):
        assert DEFAULT_SETTINGS.name == "default"

    def test_keys(self):
        assert set(DEFAULT_SETTINGS) == {
            "matrix.parallel",
            "matrix.max_workers",
            "matrix.parallel_min_size",
            "engine.column_sums",
            "engine.verify_cache",
            "engine.record_trace",
        }

    def test_default_mode_is_supported(self):
        assert DEFAULT_SETTINGS["engine.column_sums"] in COLUMN_SUM_MODES

    def test_defaults(self):
        assert DEFAULT_SETTINGS["matrix.parallel"] is False
        assert DEFAULT_SETTINGS["engine.verify_cache"] is False
        assert DEFAULT_SETTINGS["engine.record_trace"] is True
