"""Tests for the text-description key serializer.

The only contract is equality: two descriptions share a key exactly when
they are structurally and value-equal.  The exact key spelling is checked
only where it is part of the documented format (atomic strings).
"""

import pytest

from translation_batcher.translation.errors import InvalidDescription, TranslationError
from translation_batcher.translation.serializer import serialize

# =============================================================================
# ATOMIC STRINGS
# =============================================================================


@pytest.mark.unit
class TestAtomicStrings:
    def test_plain_string_is_its_own_key(self):
        assert serialize("item-name.iron-ore") == "item-name.iron-ore"

    def test_empty_string(self):
        assert serialize("") == ""

    def test_brace_prefixed_string_is_escaped(self):
        """A string that looks like a structure key must not collide with one."""
        assert serialize('{"a"}') != serialize(["a"])
        assert serialize('{"a"}').startswith("\\")

    def test_backslash_prefixed_string_is_escaped(self):
        assert serialize("\\{x") != serialize("{x")
        assert serialize("\\x") != serialize("x")

    def test_string_differs_from_single_element_structure(self):
        assert serialize("ore") != serialize(["ore"])


# =============================================================================
# STRUCTURES
# =============================================================================


@pytest.mark.unit
class TestStructures:
    def test_equal_structures_share_a_key(self):
        a = ["recipe-name", ["item-name.iron-plate"], 2]
        b = ["recipe-name", ["item-name.iron-plate"], 2]
        assert serialize(a) == serialize(b)

    def test_list_and_tuple_are_equivalent(self):
        assert serialize(["a", ("b", "c")]) == serialize(("a", ["b", "c"]))

    def test_order_matters(self):
        assert serialize(["a", "b"]) != serialize(["b", "a"])

    def test_nesting_shape_matters(self):
        assert serialize(["a", ["b", "c"]]) != serialize(["a", "b", "c"])
        assert serialize([["a"], "b"]) != serialize(["a", ["b"]])
        assert serialize([[]]) != serialize([])

    def test_separator_inside_strings_cannot_collide(self):
        assert serialize(["a,b"]) != serialize(["a", "b"])
        assert serialize(['a", "b']) != serialize(["a", "b"])

    def test_quotes_and_braces_inside_elements(self):
        assert serialize(['"}', "x"]) != serialize(['"', "}x"])

    def test_numbers_differ_from_their_string_form(self):
        assert serialize(["count", 5]) != serialize(["count", "5"])

    def test_integral_float_matches_int(self):
        assert serialize(["count", 2.0]) == serialize(["count", 2])

    def test_non_integral_floats(self):
        assert serialize(["ratio", 0.5]) == serialize(["ratio", 0.5])
        assert serialize(["ratio", 0.5]) != serialize(["ratio", 0.25])

    def test_unicode_elements(self):
        assert serialize(["名前", "é"]) == serialize(("名前", "é"))

    def test_empty_structure(self):
        assert serialize([]) == serialize(())

    def test_deep_nesting_does_not_hit_recursion_limit(self):
        deep: list = ["leaf"]
        other: list = ["leaf"]
        for _ in range(5000):
            deep = ["wrap", deep]
            other = ["wrap", other]

        assert serialize(deep) == serialize(other)

    def test_shared_subtree_is_not_a_cycle(self):
        shared = ["item-name.coal"]
        assert serialize([shared, shared]) == serialize([["item-name.coal"], ["item-name.coal"]])

    def test_input_is_not_modified(self):
        description = ["a", ["b"]]
        serialize(description)
        assert description == ["a", ["b"]]


# =============================================================================
# INVALID INPUT
# =============================================================================


@pytest.mark.unit
class TestInvalidDescriptions:
    @pytest.mark.parametrize("value", [None, 5, 1.5, True, {"a": 1}, b"bytes", object()])
    def test_invalid_top_level_values(self, value):
        with pytest.raises(InvalidDescription):
            serialize(value)

    @pytest.mark.parametrize(
        "element", [None, True, {"a": 1}, {"a"}, float("nan"), float("inf")]
    )
    def test_invalid_nested_elements(self, element):
        with pytest.raises(InvalidDescription):
            serialize(["a", ["b", element]])

    def test_self_referencing_structure(self):
        loop: list = ["a"]
        loop.append(loop)
        with pytest.raises(InvalidDescription, match="contains itself"):
            serialize(loop)

    def test_invalid_description_is_a_value_error(self):
        with pytest.raises(ValueError):
            serialize(None)

    def test_invalid_description_carries_value(self):
        with pytest.raises(TranslationError) as exc_info:
            serialize(["ok", None])
        assert exc_info.value.value is None
