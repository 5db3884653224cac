from __future__ import annotations

import pytest

from quamina.flatten_json import JSONFlattener
from quamina.flatten_scan import FlattenError
from quamina.flattener import ArrayPos, SegmentsTreeTracker


class _Node(SegmentsTreeTracker):
    def __init__(self, path: bytes = b"", root: bool = False) -> None:
        self._path = path
        self._root = root
        self.fields: set[bytes] = set()
        self.nodes: dict[bytes, _Node] = {}

    def add(self, path: str) -> None:
        segments = path.encode("utf-8").split(b"\n")
        node = self
        for seg in segments[:-1]:
            if seg not in node.nodes:
                node.nodes[seg] = _Node(node.path_for_segment(seg))
            node = node.nodes[seg]
        node.fields.add(segments[-1])

    def is_root(self) -> bool:
        return self._root

    def is_segment_used(self, segment: bytes) -> bool:
        return segment in self.fields or segment in self.nodes

    def get(self, segment: bytes):
        return self.nodes.get(segment)

    def path_for_segment(self, segment: bytes) -> bytes:
        return segment if self._root else self._path + b"\n" + segment

    def fields_count(self) -> int:
        return len(self.fields)

    def nodes_count(self) -> int:
        return len(self.nodes)


def fake_tracker(*paths: str) -> _Node:
    root = _Node(root=True)
    for path in paths:
        root.add(path)
    return root


def expect_paths(fields, wanted_paths, wanted_vals):
    assert len(fields) == len(wanted_vals)
    for field, path, val in zip(fields, wanted_paths, wanted_vals):
        assert field.path == path.encode("utf-8")
        assert field.val == val.encode("utf-8")


IMAGE_EVENT = b"""{
        "Image": {
            "Width":  800,
            "Height": 600,
            "Title":  "View from 15th Floor",
            "Thumbnail": {
                "Url":    "https://www.example.com/image/481989943",
                "Height": 125,
                "Width":  100
            },
            "Animated" : false,
            "IDs": [116, 943, 234, 38793]
          }
      }"""


def test_objects_used_only_as_leaves_are_skipped():
    fields = JSONFlattener().flatten(IMAGE_EVENT, fake_tracker("Image\nThumbnail"))
    assert fields == []


def test_objects_with_nested_fields():
    tracker = fake_tracker("Image\nThumbnail", "Image\nThumbnail\nUrl")
    fields = JSONFlattener().flatten(IMAGE_EVENT, tracker)
    expect_paths(
        fields,
        ["Image\nThumbnail\nUrl"],
        ['"https://www.example.com/image/481989943"'],
    )


BASIC = (
    b'{ "a": 1, "b": "two", "c": true, "d": null, "e": { "e1": 2, "e2": 3.02e-5}, '
    b'"f": [33e2, "x", true, false, null], "g": false, "h": [], "i": {}}'
)


def test_basic_all_fields():
    tracker = fake_tracker("a", "b", "c", "d", "e\ne1", "e\ne2", "f", "g", "h")
    fields = JSONFlattener().flatten(BASIC, tracker)
    expect_paths(
        fields,
        ["a", "b", "c", "d", "e\ne1", "e\ne2", "f", "f", "f", "f", "f", "g"],
        ["1", '"two"', "true", "null", "2", "3.02e-5", "33e2", '"x"', "true", "false", "null", "false"],
    )


def test_basic_selected_fields():
    fields = JSONFlattener().flatten(BASIC, fake_tracker("a", "f"))
    expect_paths(
        fields,
        ["a", "f", "f", "f", "f", "f"],
        ["1", "33e2", '"x"', "true", "false", "null"],
    )


def test_strings_with_escapes():
    event = r"""{
		"skipped_escaped_string": "\"hello\"",
		"skipped_escaped_string_in_middle": "\"hello\" world",
		"two_escaping": "\"hello\" world \\",
		"skipped_normal_string": "abc",
		"normal_string": "abc",
		"escaped_string": "\"hello\"",
		"unicode_string": "\uD83D\ude04"
	}""".encode("utf-8")
    tracker = fake_tracker("normal_string", "escaped_string", "unicode_string")
    fields = JSONFlattener().flatten(event, tracker)
    expect_paths(
        fields,
        ["normal_string", "escaped_string", "unicode_string"],
        ['"abc"', '""hello""', '"\U0001F604"'],
    )


@pytest.mark.parametrize(
    "event",
    [
        b'{ "a": { "v": "hello',
        b'{ "a": ["hello',
        b'{ "k": "',
        b'{ "k": { "a":',
        b'{ "k": {',
        b'{ "k": [1, ',
        b'{ "k": [',
    ],
)
def test_skipping_errors(event):
    with pytest.raises(FlattenError):
        JSONFlattener().flatten(event, fake_tracker("non_existing_value"))


def test_skipping_blocks():
    event = b"""{
		"skipped_objects_with_objects": {
			"num": 1,
			"str": "hello world",
			"arr": [1, "yo", { "k": "val", "arr": [1, 2, "name"] }],
			"obj": {
				"another_obj": {
					"name": "yo",
					"patterns": [{ "a": 1 }, { "b": [1, 2, 3] }, "d"]
				}
			}
		},
		"skipped_array_of_primitives": [1, 324, 534, "string"],
		"skipped_array_of_arrays": [[0, 1], ["lat", "lng"], [{ "name": "quamina" }, { "description": "patterns matching" }]],
		"requested_object": {
			"another_num": 1,
			"another_str": "hello world",
			"another_arr": [1, "yo", { "k": "val", "arr": [1, 2, "name"] }],
			"another_obj": {
				"key": "value"
			}
		},
	}"""
    fields = JSONFlattener().flatten(event, fake_tracker("requested_object\nanother_obj\nkey"))
    expect_paths(fields, ["requested_object\nanother_obj\nkey"], ['"value"'])


def test_minimal():
    fields = JSONFlattener().flatten(b'{"a": 1}', fake_tracker("a"))
    assert len(fields) == 1
    assert fields[0].path == b"a"
    assert fields[0].val == b"1"


def test_reuse_and_reset():
    tracker = fake_tracker("a", "b", "c", "d", "e", "f", "a\nx")
    fj = JSONFlattener()
    first = fj.flatten(b' { "a" : [1]}', tracker)
    assert len(first) == 1
    fj.reset()
    second = fj.flatten(b'{"b": 2, "c": 3}', tracker)
    expect_paths(second, ["b", "c"], ["2", "3"])
    assert len(first) == 1
    assert first[0].array_trail == [ArrayPos(1, 1)]


def test_copy_gives_working_flattener():
    copied = JSONFlattener().copy()
    fields = copied.flatten(b'{"a": "x"}', fake_tracker("a"))
    expect_paths(fields, ["a"], ['"x"'])


def test_array_trail_for_elements():
    fields = JSONFlattener().flatten(b'{"a": [1, 2]}', fake_tracker("a"))
    assert [f.array_trail for f in fields] == [[ArrayPos(1, 1)], [ArrayPos(1, 2)]]


def test_array_trail_for_objects_in_array():
    event = b'{"a": [{"b": 1}, {"b": 2}]}'
    fields = JSONFlattener().flatten(event, fake_tracker("a\nb"))
    expect_paths(fields, ["a\nb", "a\nb"], ["1", "2"])
    assert fields[0].array_trail == [ArrayPos(1, 1)]
    assert fields[1].array_trail == [ArrayPos(1, 2)]


def test_error_location():
    with pytest.raises(FlattenError) as info:
        JSONFlattener().flatten(b'{\n "a": x}', fake_tracker("a"))
    assert info.value.line == 2
    assert info.value.column == 7
    assert "illegal character x" in str(info.value)


BAD_UTF = b"a\x00\x01\x02z"


@pytest.mark.parametrize(
    "event",
    [
        b'{"a',
        b'{"a"' + BAD_UTF + b'": 3}',
        rb'{"a": "a\zb"}',
        rb'{"a\zb": 2}',
        b'{"a": 23z}',
        b"",
        b'"xx"',
        b'{"a": xx}',
        b'{"a": 1} x',
        b"{",
        b'{ "a\x00\x01\x02": 1}',
        b'{ r "a": 1}',
        b'{ "a" r: 1}',
        b'{ "a" :',
        b'{ "a" : ',
        b'{"a" : [ foo ]}',
        b'{"a": { x }}',
        b'{"a": 2',
        b'{"a": 4 4}"',
        b'{"a": [',
        b'{"a": [  ',
        b'{"a" : [ {"a": xx ]}',
        b'{"a" : [ z ]}',
        b'{"a" : [ 34r ]}',
        b'{"a" : [ 34 r ]}',
        b'{"a" : 3.3z}',
        b'{"a" : 3.3e3z}',
        b'{"a" : tru}',
        b'{"a" : tru',
        b'{"a" : truse}',
        b'{"a" : "',
        b'{"a" : "' + BAD_UTF + b'"}"',
        b'{"a" : "t',
        rb'{"a": "\n' + BAD_UTF + b'"}"',
        rb'{"a": "\nab',
        b'{"',
        b'{"' + BAD_UTF + b'": 1}',
        b'{"a": "\\',
        b'{"a": -z}',
        b'{"a": 23ez}',
    ],
)
def test_error_cases(event):
    tracker = fake_tracker("a", "b", "c", "d", "e", "f", "a\nx")
    with pytest.raises(FlattenError):
        JSONFlattener().flatten(event, tracker)